"""Command-line interface entry point for the salesboard extractor."""

from __future__ import annotations

import argparse
import asyncio
import json
import os
from typing import Any, Iterable

from dotenv import load_dotenv

from salesboard.errors import ConfigurationError
from salesboard.logging_config import get_logger
from salesboard.pipeline import MODES, run_invocation
from salesboard.settings import load_settings

LOGGER = get_logger(__name__)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the extractor."""

    parser = argparse.ArgumentParser(
        description="Extract UpSeller store-sales KPIs for a single day."
    )
    parser.add_argument("--day", "-d", type=str, help="Day of month (1-31).")
    parser.add_argument("--month", "-m", type=str, help="Month (1-12).")
    parser.add_argument("--year", "-y", type=str, help="Four-digit year.")
    parser.add_argument(
        "--mode",
        type=str,
        default="",
        choices=[mode for mode in MODES if mode],
        help="normal (default), ping (configuration check) or html (raw page dump).",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Optional YAML overlay (defaults to $SALESBOARD_CONFIG).",
    )
    parser.add_argument(
        "--pretty",
        action="store_true",
        help="Indent the JSON envelope.",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Serve the HTTP API with uvicorn instead of running once.",
    )
    parser.add_argument(
        "--host",
        type=str,
        default="0.0.0.0",
        help="Bind address for --serve (default: 0.0.0.0).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("PORT", "8000")),
        help="Port for --serve (default: $PORT or 8000).",
    )
    return parser.parse_args(list(argv) if argv is not None else None)


def _serve(host: str, port: int) -> None:
    import uvicorn

    LOGGER.info("Serving API on %s:%s", host, port)
    uvicorn.run("salesboard.api:app", host=host, port=port, reload=False)


async def _async_main(args: argparse.Namespace) -> dict[str, Any]:
    settings = load_settings(args.config)
    return await run_invocation(args.day, args.month, args.year, args.mode, settings=settings)


def main(argv: Iterable[str] | None = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    if args.serve:
        _serve(args.host, args.port)
        return 0

    try:
        payload = asyncio.run(_async_main(args))
    except ConfigurationError as exc:
        LOGGER.error("Configuration error: %s", exc)
        payload = {"ok": False, "error": str(exc), "tookMs": 0}
    except KeyboardInterrupt:  # pragma: no cover - interactive safety
        LOGGER.info("Interrupted by user")
        return 130

    print(json.dumps(payload, ensure_ascii=False, indent=2 if args.pretty else None))
    return 0 if payload.get("ok") else 1


if __name__ == "__main__":
    raise SystemExit(main())
