"""CLI entry point for support-relay."""

from __future__ import annotations

import argparse
import asyncio
import sys

from support_relay.config import AppConfig, load_config
from support_relay.log import setup_logging


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="support-relay",
        description="Customer-support chat relay: canned bot, AI fallback and human takeover",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    for name, help_text in [
        ("start", "Start the HTTP server and Telegram channel"),
        ("config-check", "Validate configuration"),
        ("patterns", "List the stored knowledge patterns"),
    ]:
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("-c", "--config", default="config.yaml", help="Path to config file")
        sub.add_argument("-e", "--env", default=".env", help="Path to .env file")

    args = parser.parse_args()

    if args.command is None:
        # Default to start
        args.command = "start"
        args.config = "config.yaml"
        args.env = ".env"

    if args.command == "config-check":
        _check_config(args.config, args.env)
    elif args.command == "patterns":
        _list_patterns(args.config, args.env)
    elif args.command == "start":
        _run(args.config, args.env)


def _load(config_path: str, env_path: str) -> AppConfig:
    try:
        return load_config(config_path, env_path)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Run 'python install.py' first or copy config.example.yaml to config.yaml")
        sys.exit(1)
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)


def _check_config(config_path: str, env_path: str) -> None:
    """Validate configuration and print summary."""
    config = _load(config_path, env_path)
    print(f"Configuration valid: {config_path}")
    print(f"  Server: {config.server.host}:{config.server.port} ({config.server.public_url})")
    print(f"  Storage: {config.storage.db_path}")
    print(f"  Matcher threshold: {config.matcher.threshold}")
    backend_configured = getattr(config, config.ai.backend, None) is not None
    print(
        f"  AI: {config.ai.backend} [{config.ai.model}, max_tokens={config.ai.max_tokens}]"
        f"{'' if backend_configured else ' (no credentials, fallback replies only)'}"
    )
    telegram = "disabled" if not config.telegram.token else config.telegram.mode
    print(f"  Telegram: {telegram} (admin: {config.telegram.admin_id or '-'})")
    print(
        f"  Housekeeping: {'on' if config.housekeeping.enabled else 'off'}"
        f" (purge every {config.housekeeping.purge_interval_minutes}m, digest '{config.housekeeping.digest_cron}')"
    )


def _list_patterns(config_path: str, env_path: str) -> None:
    """Print the knowledge patterns, seeding defaults into an empty store."""
    from support_relay.core.clock import SystemClock
    from support_relay.engine.matcher import KnowledgeMatcher
    from support_relay.storage.database import Database
    from support_relay.storage.pattern_repo import PatternRepository

    config = _load(config_path, env_path)
    setup_logging("WARNING")

    async def _show() -> None:
        db = Database(config.storage.db_path)
        await db.initialize()
        try:
            matcher = KnowledgeMatcher(PatternRepository(db), SystemClock(), config.matcher.threshold)
            await matcher.load(seed_defaults=config.matcher.seed_defaults)
            print(f"Knowledge patterns ({len(matcher.patterns)})")
            print("=" * 50)
            for p in matcher.patterns:
                print(f"\n  #{p.id} [{p.source.value}] confidence={p.confidence:.2f} usage={p.usage}")
                print(f"    Keywords: {', '.join(p.keywords)}")
                print(f"    Response: {p.response[:80]}{'...' if len(p.response) > 80 else ''}")
            print()
        finally:
            await db.close()

    asyncio.run(_show())


def _run(config_path: str, env_path: str) -> None:
    """Load config and serve the application."""
    import uvicorn

    from support_relay.api.app import create_app
    from support_relay.app import SupportRelayApp

    config = _load(config_path, env_path)
    setup_logging(config.log_level, config.log_format)

    app = create_app(SupportRelayApp(config))
    # uvicorn owns signal handling; the FastAPI lifespan starts and stops the relay
    uvicorn.run(app, host=config.server.host, port=config.server.port, log_config=None)


if __name__ == "__main__":
    main()
