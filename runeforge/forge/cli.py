"""
RuneForge CLI

Runs the rune pipeline on one file and prints the resulting report.

Usage:
    runeforge path/to/file.png [--proxy-url URL] [--workspace DIR]
                               [--backend auto|filesystem|export]
                               [--offline] [--json] [--save-config] [-v]
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from ..common.config import load_config, save_config, RuneForgeConfig
from ..common.errors import InputError
from ..common.gateway import build_gateway
from ..common.schemas import render_report, rune_to_document
from .assembler import AssemblyResult, RuneAssembler
from .extractor import ModalityExtractor, load_input_file
from .frames import FFmpegFrameExtractor
from .normalizer import SchemaNormalizer
from .persistence import select_backend
from .vector_fuser import VectorFuser

logger = logging.getLogger("runeforge.forge.cli")

EXIT_OK = 0
EXIT_SAVE_FAILED = 1
EXIT_INPUT_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="runeforge", description="Forge a rune from one media file")
    parser.add_argument("file", help="Image, audio, video or text file")
    parser.add_argument("--proxy-url", help="Base URL of the provider proxy (e.g. http://localhost:3001/api/gemini)")
    parser.add_argument("--workspace", help="Directory where runes and media are written")
    parser.add_argument("--backend", choices=["auto", "filesystem", "export"], help="Persistence backend")
    parser.add_argument("--offline", action="store_true", help="Skip the provider and use heuristics only")
    parser.add_argument("--json", action="store_true", help="Print the persisted document instead of the report")
    parser.add_argument(
        "--save-config", action="store_true",
        help="Write the effective settings (minus env-sourced keys) to the config file before running",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log pipeline progress")
    return parser


def apply_overrides(config: RuneForgeConfig, args: argparse.Namespace) -> RuneForgeConfig:
    if args.proxy_url:
        config.proxy.base_url = args.proxy_url
    if args.workspace:
        config.storage.workspace_path = args.workspace
    if args.backend:
        config.storage.backend = args.backend
    return config


async def forge(path: str, config: RuneForgeConfig, offline: bool = False) -> AssemblyResult:
    """Run the full pipeline for one file."""
    input_file = await load_input_file(path)
    gateway = build_gateway(config, offline=offline)
    try:
        assembler = RuneAssembler(
            gateway=gateway,
            extractor=ModalityExtractor(
                gateway,
                FFmpegFrameExtractor(
                    timeout=config.pipeline.frame_timeout,
                    fallback_timeout=config.pipeline.frame_fallback_timeout,
                    offset=config.pipeline.frame_offset,
                ),
            ),
            normalizer=SchemaNormalizer(config.pipeline),
            fuser=VectorFuser(gateway, default_dimension=config.models.embedding_dimension),
            persistence=select_backend(config.storage),
        )
        return await assembler.assemble(input_file)
    finally:
        await gateway.aclose()


def format_result(result: AssemblyResult) -> str:
    lines = [render_report(result.rune), f"State: {result.state.value}"]
    if result.degraded_stages:
        lines.append(f"Degraded: {', '.join(result.degraded_stages)}")
    save = result.save_result
    if save is None:
        lines.append("Saved: no")
    elif save.success:
        lines.append(f"Saved: {save.path}")
    else:
        lines.append(f"Save failed: {save.error}")
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = apply_overrides(load_config(), args)
    if args.save_config:
        saved_to = save_config(config)
        print(f"[RuneForge] Saved settings to {saved_to}", file=sys.stderr)

    try:
        result = asyncio.run(forge(args.file, config, offline=args.offline))
    except InputError as e:
        print(f"[RuneForge] {e}", file=sys.stderr)
        return EXIT_INPUT_ERROR

    if args.json:
        names = [Path(args.file).name]
        print(json.dumps(rune_to_document(result.rune, names), ensure_ascii=False, indent=2))
    else:
        print(format_result(result))

    return EXIT_OK if result.saved else EXIT_SAVE_FAILED


if __name__ == "__main__":
    sys.exit(main())
