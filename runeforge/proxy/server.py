"""
RuneForge Proxy Server

FastAPI server that keeps provider keys off the client and forwards
understanding requests to Google Gemini or OpenAI.

Endpoints:
- POST /api/gemini/generate: text generation (native contents or OpenAI-style messages)
- POST /api/gemini/embeddings: text embedding
- POST /api/gemini/vision: image understanding
- POST /api/gemini/audio/transcriptions: prompt-based audio transcription (multipart)
- POST /api/openai: chat completions passthrough
- POST /api/openai/embeddings, /api/openai/vision, /api/openai/audio/transcriptions
- GET /health: health check

Provider status codes and bodies are returned verbatim. Local failures
return 500 {"error": "..."}; malformed requests return 400.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import httpx
from dotenv import load_dotenv
from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..common.config import RuneForgeConfig, load_config
from ..common.errors import InputError, RuneForgeError
from .providers import ForwardResponse, GeminiForwarder, OpenAIForwarder

logger = logging.getLogger("runeforge.proxy.server")


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _forwarded(response: ForwardResponse) -> JSONResponse:
    return JSONResponse(status_code=response.status_code, content=response.body)


async def _json_body(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError as e:
        raise InputError(f"invalid JSON body: {e}") from e
    if not isinstance(body, dict):
        raise InputError("JSON body must be an object")
    return body


async def _read_upload(request: Request, file: Optional[UploadFile]) -> bytes:
    if file is None:
        raise InputError("missing audio file field 'file'")
    data = await file.read()
    limit = request.app.state.config.proxy.max_upload_bytes
    if len(data) > limit:
        raise InputError(f"audio file exceeds {limit} bytes")
    return data


def create_app(
    config: Optional[RuneForgeConfig] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """Build the proxy app. Config and HTTP client may be injected for tests."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        load_dotenv()
        cfg = config or load_config()
        app.state.config = cfg
        app.state.gemini = GeminiForwarder(
            api_key=cfg.provider.google_api_key,
            endpoint=cfg.provider.google_endpoint,
            http_client=http_client,
        )
        app.state.openai = OpenAIForwarder(
            api_key=cfg.provider.openai_api_key,
            endpoint=cfg.provider.openai_endpoint,
            http_client=http_client,
        )
        logger.info("[Proxy] Started (gemini=%s, openai=%s)",
                    app.state.gemini.is_configured, app.state.openai.is_configured)
        yield
        await app.state.gemini.aclose()
        await app.state.openai.aclose()
        logger.info("[Proxy] Shut down")

    app = FastAPI(
        title="RuneForge Proxy",
        description="Forwards understanding requests to AI providers",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        client = request.headers.get("x-forwarded-for") or (request.client.host if request.client else "unknown")
        logger.info("[REQ] %s %s from %s", request.method, request.url.path, client)
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info("[RES] %s %s -> %s (%.0fms)", request.method, request.url.path,
                    response.status_code, elapsed_ms)
        return response

    @app.exception_handler(InputError)
    async def input_error_handler(request: Request, exc: InputError):
        logger.warning("[Proxy] Bad request on %s: %s", request.url.path, exc)
        return _error(400, str(exc))

    @app.exception_handler(RuneForgeError)
    async def forward_error_handler(request: Request, exc: RuneForgeError):
        logger.error("[Proxy] %s failed: %s", request.url.path, exc)
        return _error(500, str(exc))

    # =========================================================================
    # Gemini
    # =========================================================================

    @app.post("/api/gemini/generate")
    async def gemini_generate(request: Request):
        body = await _json_body(request)
        gemini: GeminiForwarder = request.app.state.gemini
        contents = await gemini.build_contents(body)
        return _forwarded(await gemini.generate(contents, model=body.get("model")))

    @app.post("/api/gemini/embeddings")
    async def gemini_embeddings(request: Request):
        body = await _json_body(request)
        return _forwarded(await request.app.state.gemini.embed(body))

    @app.post("/api/gemini/vision")
    async def gemini_vision(request: Request):
        body = await _json_body(request)
        gemini: GeminiForwarder = request.app.state.gemini
        contents = await gemini.build_contents(body)
        return _forwarded(await gemini.generate(contents, model=body.get("model")))

    @app.post("/api/gemini/audio/transcriptions")
    async def gemini_transcriptions(
        request: Request,
        file: Optional[UploadFile] = File(None),
        model: Optional[str] = Form(None),
        prompt: Optional[str] = Form(None),
    ):
        data = await _read_upload(request, file)
        response = await request.app.state.gemini.transcribe(
            data, mime_type=file.content_type, model=model, prompt=prompt
        )
        return _forwarded(response)

    # =========================================================================
    # OpenAI
    # =========================================================================

    @app.post("/api/openai")
    async def openai_chat(request: Request):
        body = await _json_body(request)
        return _forwarded(await request.app.state.openai.chat(body))

    @app.post("/api/openai/embeddings")
    async def openai_embeddings(request: Request):
        body = await _json_body(request)
        return _forwarded(await request.app.state.openai.embeddings(body))

    @app.post("/api/openai/vision")
    async def openai_vision(request: Request):
        body = await _json_body(request)
        return _forwarded(await request.app.state.openai.chat(body))

    @app.post("/api/openai/audio/transcriptions")
    async def openai_transcriptions(
        request: Request,
        file: Optional[UploadFile] = File(None),
        model: Optional[str] = Form(None),
        prompt: Optional[str] = Form(None),
        language: Optional[str] = Form(None),
    ):
        data = await _read_upload(request, file)
        response = await request.app.state.openai.transcribe(
            file.filename, data, mime_type=file.content_type,
            model=model, prompt=prompt, language=language,
        )
        return _forwarded(response)

    @app.get("/health")
    async def health(request: Request):
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "runeforge-proxy",
            "providers": {
                "gemini": request.app.state.gemini.is_configured,
                "openai": request.app.state.openai.is_configured,
            },
        }

    return app


app = create_app()


# =============================================================================
# CLI Entry Point
# =============================================================================

def run_server():
    """Run the RuneForge proxy"""
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    load_dotenv()
    config = load_config()

    logger.info("[Proxy] Starting server on %s:%s", config.proxy.host, config.proxy.port)
    uvicorn.run(
        "runeforge.proxy.server:app",
        host=config.proxy.host,
        port=config.proxy.port,
        reload=False,
    )


if __name__ == "__main__":
    run_server()
