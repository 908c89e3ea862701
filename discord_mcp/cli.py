from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

import yaml

from discord_mcp.config import Config, ConfigError, apply_env, load_config, save_config
from discord_mcp.server import DiscordMcpServer

_DEFAULT_CONFIG = Path("config.yaml")

_LOG_LEVELS = {
    "DEBUG": "debug",
    "INFO": "info",
    "WARN": "warning",
    "ERROR": "error",
}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the Discord MCP server over STDIO")
    parser.add_argument(
        "--config",
        default=os.environ.get("DISCORD_MCP_CONFIG", str(_DEFAULT_CONFIG)),
        help="Path to the YAML configuration file",
    )
    parser.add_argument("--state", default=None, help="YAML snapshot of guild state to serve")
    parser.add_argument(
        "--log-level",
        choices=sorted(_LOG_LEVELS),
        default=None,
        help="Logging level (overrides the configuration file)",
    )
    parser.add_argument("--log-dir", default=None, help="Directory for the JSONL tool call audit log")
    parser.add_argument(
        "--events",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Enable or disable event notifications",
    )
    parser.add_argument(
        "--print-config",
        action="store_true",
        help="Print the effective configuration and exit",
    )
    parser.add_argument(
        "--write-config",
        metavar="PATH",
        default=None,
        help="Write the effective configuration to PATH and exit",
    )
    return parser.parse_args(argv)


def resolve_config(args: argparse.Namespace) -> Config:
    config = apply_env(load_config(args.config))
    data = config.model_dump()
    if args.state is not None:
        data["discord"]["state_file"] = args.state
    if args.log_level is not None:
        data["server"]["log_level"] = _LOG_LEVELS[args.log_level]
    if args.log_dir is not None:
        data["server"]["log_dir"] = args.log_dir
    if args.events is not None:
        data["events"]["enabled"] = args.events
    return Config.from_mapping(data, source="command line")


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        config = resolve_config(args)
    except ConfigError as exc:
        print(f"discord-mcp: {exc}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=config.server.effective_level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.write_config is not None:
        target = save_config(config, args.write_config)
        logging.getLogger(__name__).info("Wrote configuration to %s", target)
        return 0
    if args.print_config:
        yaml.safe_dump(config.model_dump(mode="json"), sys.stdout, sort_keys=False)
        return 0

    try:
        server = DiscordMcpServer.create(config)
    except (OSError, ValueError) as exc:
        logging.getLogger(__name__).error("Failed to start server: %s", exc)
        return 1
    server.run(sys.stdin)
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    raise SystemExit(main())
