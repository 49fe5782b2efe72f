"""
Configuration Management for RuneForge

Loads configuration from ~/.runeforge/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field

logger = logging.getLogger("runeforge.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".runeforge"
CONFIG_PATH = CONFIG_DIR / "config.json"
WORKSPACE_DIR = CONFIG_DIR / "workspace"

DEFAULT_CHAT_MODEL = "gemini-2.5-flash"
DEFAULT_EMBEDDING_MODEL = "text-embedding-004"
DEFAULT_EMBEDDING_DIMENSION = 768
DEFAULT_PROXY_PORT = 3001


@dataclass
class ProviderConfig:
    """Upstream AI vendor credentials (only the proxy reads these)"""
    google_api_key: str = ""
    google_endpoint: str = "https://generativelanguage.googleapis.com/v1beta"
    openai_api_key: str = ""
    openai_endpoint: str = "https://api.openai.com/v1"


@dataclass
class ProxyConfig:
    """Proxy server and the base URL the gateway calls"""
    host: str = "0.0.0.0"
    port: int = DEFAULT_PROXY_PORT
    base_url: str = f"http://localhost:{DEFAULT_PROXY_PORT}/api/gemini"
    max_upload_bytes: int = 20 * 1024 * 1024


@dataclass
class ModelConfig:
    """Model names and embedding shape"""
    chat_model: str = DEFAULT_CHAT_MODEL
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    embedding_dimension: int = DEFAULT_EMBEDDING_DIMENSION
    transcription_model: str = DEFAULT_CHAT_MODEL


@dataclass
class PipelineConfig:
    """Timeouts and heuristic knobs of the generation pipeline"""
    request_timeout: float = 30.0
    retry_backoff: float = 0.8
    frame_timeout: float = 1.5
    frame_fallback_timeout: float = 5.0
    frame_offset: float = 0.0
    prompt_text_limit: int = 1200
    fallback_keyword_count: int = 6


@dataclass
class StorageConfig:
    """Persistence backend selection"""
    workspace_path: str = str(WORKSPACE_DIR)
    backend: str = "auto"  # "auto", "filesystem" or "export"


@dataclass
class RuneForgeConfig:
    """Main RuneForge configuration"""
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    models: ModelConfig = field(default_factory=ModelConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_provider_config(data: dict) -> ProviderConfig:
    """Parse provider section from config dict"""
    provider_data = data.get("provider", {})
    defaults = ProviderConfig()
    return ProviderConfig(
        google_api_key=provider_data.get("google_api_key", ""),
        google_endpoint=provider_data.get("google_endpoint", defaults.google_endpoint),
        openai_api_key=provider_data.get("openai_api_key", ""),
        openai_endpoint=provider_data.get("openai_endpoint", defaults.openai_endpoint),
    )


def _parse_proxy_config(data: dict) -> ProxyConfig:
    """Parse proxy section from config dict"""
    proxy_data = data.get("proxy", {})
    defaults = ProxyConfig()
    return ProxyConfig(
        host=proxy_data.get("host", defaults.host),
        port=int(proxy_data.get("port", defaults.port)),
        base_url=proxy_data.get("base_url", defaults.base_url),
        max_upload_bytes=int(proxy_data.get("max_upload_bytes", defaults.max_upload_bytes)),
    )


def _parse_model_config(data: dict) -> ModelConfig:
    """Parse models section from config dict"""
    model_data = data.get("models", {})
    return ModelConfig(
        chat_model=model_data.get("chat_model", DEFAULT_CHAT_MODEL),
        embedding_model=model_data.get("embedding_model", DEFAULT_EMBEDDING_MODEL),
        embedding_dimension=int(model_data.get("embedding_dimension", DEFAULT_EMBEDDING_DIMENSION)),
        transcription_model=model_data.get("transcription_model", DEFAULT_CHAT_MODEL),
    )


def _parse_pipeline_config(data: dict) -> PipelineConfig:
    """Parse pipeline section from config dict"""
    pipeline_data = data.get("pipeline", {})
    defaults = PipelineConfig()
    return PipelineConfig(
        request_timeout=float(pipeline_data.get("request_timeout", defaults.request_timeout)),
        retry_backoff=float(pipeline_data.get("retry_backoff", defaults.retry_backoff)),
        frame_timeout=float(pipeline_data.get("frame_timeout", defaults.frame_timeout)),
        frame_fallback_timeout=float(
            pipeline_data.get("frame_fallback_timeout", defaults.frame_fallback_timeout)
        ),
        frame_offset=float(pipeline_data.get("frame_offset", defaults.frame_offset)),
        prompt_text_limit=int(pipeline_data.get("prompt_text_limit", defaults.prompt_text_limit)),
        fallback_keyword_count=int(
            pipeline_data.get("fallback_keyword_count", defaults.fallback_keyword_count)
        ),
    )


def _parse_storage_config(data: dict) -> StorageConfig:
    """Parse storage section from config dict"""
    storage_data = data.get("storage", {})
    return StorageConfig(
        workspace_path=storage_data.get("workspace_path", str(WORKSPACE_DIR)),
        backend=storage_data.get("backend", "auto"),
    )


def load_config() -> RuneForgeConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.runeforge/config.json)
    3. Default values
    """
    config = RuneForgeConfig()

    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.provider = _parse_provider_config(data)
            config.proxy = _parse_proxy_config(data)
            config.models = _parse_model_config(data)
            config.pipeline = _parse_pipeline_config(data)
            config.storage = _parse_storage_config(data)
        except (json.JSONDecodeError, IOError, ValueError) as e:
            logger.warning("Failed to load config file %s: %s", CONFIG_PATH, e)

    # Provider keys (tracked so save_config never writes them to disk)
    _env_key_map = {
        "GOOGLE_API_KEY": "google_api_key",
        "GEMINI_API_KEY": "google_api_key",
        "OPENAI_API_KEY": "openai_api_key",
    }
    for env_var, attr in _env_key_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.provider, attr, val)
            config._env_sourced_keys.add(attr)

    if os.getenv("RUNEFORGE_PROXY_URL"):
        config.proxy.base_url = os.getenv("RUNEFORGE_PROXY_URL")
    if os.getenv("PORT"):
        config.proxy.port = int(os.getenv("PORT"))

    if os.getenv("RUNEFORGE_CHAT_MODEL"):
        config.models.chat_model = os.getenv("RUNEFORGE_CHAT_MODEL")
    if os.getenv("RUNEFORGE_EMBEDDING_DIMENSION"):
        config.models.embedding_dimension = int(os.getenv("RUNEFORGE_EMBEDDING_DIMENSION"))

    if os.getenv("RUNEFORGE_WORKSPACE"):
        config.storage.workspace_path = os.getenv("RUNEFORGE_WORKSPACE")
    if os.getenv("RUNEFORGE_STORAGE_BACKEND"):
        config.storage.backend = os.getenv("RUNEFORGE_STORAGE_BACKEND")

    return config


def save_config(config: RuneForgeConfig) -> Path:
    """Save configuration to file and return its path.

    API key fields that were sourced from environment variables are written
    as empty strings so that secrets are not persisted to disk.
    """
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    provider_section = {
        "google_api_key": config.provider.google_api_key,
        "google_endpoint": config.provider.google_endpoint,
        "openai_api_key": config.provider.openai_api_key,
        "openai_endpoint": config.provider.openai_endpoint,
    }
    for key in ("google_api_key", "openai_api_key"):
        if key in env_sourced:
            provider_section[key] = ""

    data = {
        "provider": provider_section,
        "proxy": {
            "host": config.proxy.host,
            "port": config.proxy.port,
            "base_url": config.proxy.base_url,
            "max_upload_bytes": config.proxy.max_upload_bytes,
        },
        "models": {
            "chat_model": config.models.chat_model,
            "embedding_model": config.models.embedding_model,
            "embedding_dimension": config.models.embedding_dimension,
            "transcription_model": config.models.transcription_model,
        },
        "pipeline": {
            "request_timeout": config.pipeline.request_timeout,
            "retry_backoff": config.pipeline.retry_backoff,
            "frame_timeout": config.pipeline.frame_timeout,
            "frame_fallback_timeout": config.pipeline.frame_fallback_timeout,
            "frame_offset": config.pipeline.frame_offset,
            "prompt_text_limit": config.pipeline.prompt_text_limit,
            "fallback_keyword_count": config.pipeline.fallback_keyword_count,
        },
        "storage": {
            "workspace_path": config.storage.workspace_path,
            "backend": config.storage.backend,
        },
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)
    return CONFIG_PATH
