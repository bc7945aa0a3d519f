"""AutoSplit command line entry point.

Flags override the matching ``AUTOSPLIT_*`` environment variables; the app
factory then reads everything back through ``AutosplitConfig.from_env``.
"""

from __future__ import annotations

import argparse
import os
import sys

import uvicorn

from autosplit.service.config import parse_tokens
from autosplit.service.logging import configure_logging, get_logger

# flag destination -> environment variable read by AutosplitConfig.from_env
_ENV_OVERRIDES = {
    "deployer": "AUTOSPLIT_DEPLOYER",
    "db_path": "AUTOSPLIT_DB_PATH",
    "event_log": "AUTOSPLIT_EVENT_LOG",
    "voting_window_ms": "AUTOSPLIT_VOTING_WINDOW_MS",
    "native_symbol": "AUTOSPLIT_NATIVE_SYMBOL",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="autosplit",
        description="Serve the AutoSplit team payment-split ledger over HTTP",
    )
    parser.add_argument("--host", default="0.0.0.0", help="Interface to bind (default: 0.0.0.0)")
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("AUTOSPLIT_PORT", "4950")),
        help="Port to listen on (default: 4950)",
    )
    parser.add_argument("--deployer", help="Wallet recorded as contract owner on first start")
    parser.add_argument("--db-path", help="SQLite ledger file, or :memory: for a throwaway ledger")
    parser.add_argument("--event-log", help="JSONL file receiving every committed ledger event")
    parser.add_argument(
        "--voting-window-ms",
        type=int,
        help="Split proposal voting window in milliseconds (default: 3 days)",
    )
    parser.add_argument("--native-symbol", help="Currency label of the native coin")
    parser.add_argument(
        "--token",
        action="append",
        default=[],
        metavar="TOKEN:WALLET",
        help="Bearer token acting for a wallet; repeatable, added to AUTOSPLIT_TOKENS",
    )
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload for development")
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["debug", "info", "warning", "error", "critical"],
    )
    parser.add_argument("--json-logs", action="store_true", help="Force JSON log output")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    configure_logging(level=args.log_level, json_output=args.json_logs or None)
    logger = get_logger("autosplit.main")

    for dest, env_name in _ENV_OVERRIDES.items():
        value = getattr(args, dest)
        if value is not None:
            os.environ[env_name] = str(value)
    os.environ["AUTOSPLIT_PORT"] = str(args.port)

    if args.token:
        try:
            parse_tokens(",".join(args.token))
        except ValueError as exc:
            logger.error("cli.invalid_token", error=str(exc))
            return 2
        existing = os.environ.get("AUTOSPLIT_TOKENS", "")
        os.environ["AUTOSPLIT_TOKENS"] = ",".join(filter(None, [existing, *args.token]))

    if not os.environ.get("AUTOSPLIT_DEPLOYER"):
        logger.error("cli.missing_deployer", hint="pass --deployer or set AUTOSPLIT_DEPLOYER")
        return 2

    try:
        uvicorn.run(
            "autosplit.service.app:create_app_from_env",
            host=args.host,
            port=args.port,
            reload=args.reload,
            log_level=args.log_level,
            factory=True,
        )
    except KeyboardInterrupt:
        logger.info("cli.interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
