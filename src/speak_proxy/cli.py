"""
Command-Line Interface for speak-proxy.

Usage Examples:
    # Run the HTTP service (HOST / PORT / YANDEX_API_KEY from the environment)
    speak-proxy serve
    speak-proxy serve --host 127.0.0.1 --port 8080

    # One-off synthesis straight through the provider, no server
    speak-proxy say "Привет, мир" --voice jane --out hello.mp3

    # Show the normalized request without calling the provider
    speak-proxy say "Привет" --speed 3 --dry-run --json

Exit codes:
    0  success
    1  bad request (no text) or provider error
"""

from __future__ import annotations

import argparse
import asyncio
import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

from speak_proxy import __version__
from speak_proxy.core.config import SpeakServiceConfig, load_settings_or_defaults
from speak_proxy.core.logging import configure_logging, fail, get_logger, info, set_request_id
from speak_proxy.services.gateway import GatewayError, SynthesisGateway
from speak_proxy.services.normalizer import BadRequest, SynthesisRequest, normalize
from speak_proxy.services.request_log import utf16_length


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="speak-proxy", description="speak-proxy CLI (Yandex SpeechKit proxy)")
    parser.add_argument("--version", action="version", version=f"speak-proxy {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP service")
    serve.add_argument("--host", help="Bind address (default: HOST or 0.0.0.0)")
    serve.add_argument("--port", type=int, help="Listen port (default: PORT or 3000)")
    serve.add_argument("--log-level", help="Verbosity 1-4 or MINIMAL/NORMAL/VERBOSE/DEBUG")

    say = sub.add_parser("say", help="Synthesize one text to an MP3 file")
    say.add_argument("text", help="Text to synthesize")
    say.add_argument("--voice", help="Voice override")
    say.add_argument("--emotion", help="Emotion override")
    say.add_argument("--speed", help="Speech rate (clamped to 0.5-1.5)")
    say.add_argument("--out", default="out.mp3", help="Output path (default: out.mp3)")
    say.add_argument("--dry-run", action="store_true",
                     help="Normalize and summarize without calling the provider")
    say.add_argument("--json", action="store_true",
                     help="Print JSON summary")

    return parser.parse_args(argv)


def _print_payload(payload: Dict[str, Any], as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        print(payload)


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    if args.log_level:
        configure_logging(level=args.log_level, force=True)
    settings = load_settings_or_defaults()
    host = args.host or settings.host
    port = args.port or settings.port

    info(get_logger("speak-proxy.cli"), "serve", host=host, port=port)
    uvicorn.run("speak_proxy.main:app", host=host, port=port, access_log=False)
    return 0


async def _synthesize(config: SpeakServiceConfig, request: SynthesisRequest):
    gateway = SynthesisGateway(config.gateway)
    try:
        return await gateway.synthesize(request)
    finally:
        await gateway.close()


def _say(args: argparse.Namespace) -> int:
    configure_logging()
    log = get_logger("speak-proxy.cli")
    set_request_id(str(uuid4())[:12])

    config = SpeakServiceConfig.from_settings(load_settings_or_defaults())
    outcome = normalize(args.text, args.voice, args.emotion, args.speed, config.normalizer)

    if isinstance(outcome, BadRequest):
        fail(log, "bad_request", error=outcome.message)
        _print_payload({"ok": False, "error": outcome.message}, args.json)
        return 1

    summary = asdict(outcome)
    summary["text_len"] = utf16_length(args.text)

    if args.dry_run:
        _print_payload({"ok": True, "dry_run": True, "request": summary}, args.json)
        print("DRY_RUN_OK")
        return 0

    result = asyncio.run(_synthesize(config, outcome))
    if isinstance(result, GatewayError):
        fail(log, "gateway_error", provider_status=result.status_code)
        _print_payload({"ok": False, "error": result.message, "provider_status": result.status_code}, args.json)
        return 1

    out_path = Path(args.out)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(result.data)

    _print_payload({"ok": True, "dry_run": False, "out": str(out_path), "bytes": len(result.data), "request": summary}, args.json)
    print("CLI_OK")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code (0 for success, 1 for bad input or provider failure).
    """
    args = _parse_args(argv)
    if args.command == "serve":
        return _serve(args)
    return _say(args)


if __name__ == "__main__":
    raise SystemExit(main())
