"""CLI entry point for split-bot."""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys

from split_bot.app import SplitBotApp
from split_bot.config import load_config
from split_bot.log import setup_logging


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="split-bot",
        description="Telegram bot for creating Splitwise group expenses",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    for name, help_text in (("start", "Start the bot"), ("config-check", "Validate configuration")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("-c", "--config", default="config.yaml", help="Path to config file")
        sub.add_argument("-e", "--env", default=".env", help="Path to .env file")

    args = parser.parse_args()

    if args.command is None:
        args.command = "start"
        args.config = "config.yaml"
        args.env = ".env"

    if args.command == "config-check":
        _check_config(args.config, args.env)
    elif args.command == "start":
        _run(args.config, args.env)


def _check_config(config_path: str, env_path: str) -> None:
    """Validate configuration and print summary."""
    try:
        config = load_config(config_path, env_path)
        print(f"Configuration valid: {config_path}")
        print(f"  Data directory: {config.data_dir}")
        print(f"  Storage: {config.storage.db_path}")
        print(f"  Splitwise API: {config.splitwise.base_url}")
        print(f"  Redirect URI: {config.splitwise.redirect_uri}")
        if config.oauth.enabled:
            print(
                f"  OAuth callback: http://{config.oauth.host}:{config.oauth.port}{config.oauth.path}"
            )
        print(
            f"  Timeouts: buttons {config.session.button_timeout:g}s, "
            f"login {config.session.login_timeout:g}s"
        )
        print(f"  Default currency: {config.session.default_currency}")
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)


def _run(config_path: str, env_path: str) -> None:
    """Load config and start the application."""
    try:
        config = load_config(config_path, env_path)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Run 'python install.py' first or copy config.example.yaml to config.yaml")
        sys.exit(1)
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config.log_level, json_output=config.json_logs)

    async def _async_main() -> None:
        loop = asyncio.get_running_loop()
        stop_event = asyncio.Event()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop_event.set)
            except NotImplementedError:
                # Windows doesn't support add_signal_handler
                signal.signal(sig, lambda s, f: stop_event.set())

        app = SplitBotApp(config)
        await app.start()
        try:
            await stop_event.wait()
        finally:
            await app.stop()

    asyncio.run(_async_main())


if __name__ == "__main__":
    main()
