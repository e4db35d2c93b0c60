from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

import uvicorn

from devnotify.api import create_app
from devnotify.lib.broker import KnownTags, Message, SubscriptionLoadError
from devnotify.lib.client import ClientError, NotificationClient
from devnotify.lib.config import ConfigError, app_config
from devnotify.lib.logging_utils import setup_logging
from devnotify.lib.setup import build_broker


PROJECT_ROOT = Path(__file__).resolve().parent.parent
_config_override = os.getenv("DEVNOTIFY_CONFIG")
DEFAULT_CONFIG_PATH = Path(_config_override) if _config_override else PROJECT_ROOT / "config.yaml"

logger = logging.getLogger("devnotify.main")


def serve(config_path: Optional[Path], host: str, log_dir: Optional[Path]) -> int:
    try:
        config = app_config(config_path)
    except ConfigError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2
    setup_logging(level=logging.DEBUG if config.debug else logging.INFO, log_dir=log_dir)

    try:
        broker = build_broker(config)
    except (ValueError, SubscriptionLoadError) as exc:
        logger.error("Startup failed: %s", exc)
        return 1

    app = create_app(broker)
    logger.info("Listening on %s:%s", host, config.api_port)
    try:
        uvicorn.run(app, host=host, port=config.api_port, log_level="info")
    finally:
        broker.receivers.close()
    return 0


def send(base_url: str, sender: str, title: str, body: str, tags: List[str]) -> int:
    message = Message(sender=sender, title=title, body=body, tags=tuple(tags))
    with NotificationClient(base_url) as client:
        try:
            client.send_message(message)
        except ClientError as exc:
            print(f"Send failed: {exc}", file=sys.stderr)
            return 1
    print("Message accepted.")
    return 0


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Developer notification broker.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP ingress and broker.")
    serve_parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help="Path to the YAML/JSON configuration file.",
    )
    serve_parser.add_argument("--host", default="0.0.0.0", help="Interface to bind.")
    serve_parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Optional directory for debug.log.",
    )

    send_parser = subparsers.add_parser("send", help="Post a single message to a running instance.")
    send_parser.add_argument("--url", default="http://localhost:8080", help="Base URL of the service.")
    send_parser.add_argument("--sender", required=True)
    send_parser.add_argument("--title", required=True)
    send_parser.add_argument("--body", default="")
    send_parser.add_argument(
        "--tag",
        dest="tags",
        action="append",
        default=[],
        help=f"Message tag, repeatable (e.g. {KnownTags.ERROR}, {KnownTags.WARNING}).",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    if args.command == "serve":
        config_path = args.config if args.config.exists() else None
        if config_path is None:
            print(f"No config file at {args.config}; using environment only", file=sys.stderr)
        return serve(config_path, args.host, args.log_dir)
    return send(args.url, args.sender, args.title, args.body, args.tags)


if __name__ == "__main__":
    sys.exit(main())
