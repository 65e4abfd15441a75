"""CLI argument parsing and main entry point.

* ``agent-runtime presets``: list the built-in server presets.
* ``agent-runtime tools --config FILE``: connect and list namespaced tools.
* ``agent-runtime call --config FILE NAME``: execute one tool and print the result.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, List

from agent_runtime.bridge.client_manager import McpClientManager
from agent_runtime.config.flags import FeatureFlags
from agent_runtime.config.loader import load_runtime_config
from agent_runtime.config.presets import list_presets
from agent_runtime.constants import APP_NAME, APP_VERSION, DEFAULT_LOG_LEVEL
from agent_runtime.display.logging_config import setup_logging
from agent_runtime.errors import ConfigurationError
from agent_runtime.runtime.models import ToolCallRequest, ToolResult

module_logger = logging.getLogger(__name__)


# ── ``agent-runtime presets`` ───────────────────────────────────────────


def _cmd_presets(_args: argparse.Namespace) -> None:
    for preset in list_presets():
        print(f"{preset['key']:<12} {preset['name']:<12} {preset['description']}")


# ── ``agent-runtime tools`` / ``call`` ──────────────────────────────────


async def _list_tools(config_path: str) -> List[Dict[str, Any]]:
    runtime_cfg = load_runtime_config(config_path)
    manager = McpClientManager(flags=FeatureFlags(runtime_cfg.feature_flags))
    async with manager:
        await manager.connect(runtime_cfg.servers)
        return await manager.to_anthropic_tools()


async def _call_tool(config_path: str, name: str, arguments: Dict[str, Any]) -> ToolResult:
    runtime_cfg = load_runtime_config(config_path)
    manager = McpClientManager(flags=FeatureFlags(runtime_cfg.feature_flags))
    async with manager:
        await manager.connect(runtime_cfg.servers)
        return await manager.execute_tool(ToolCallRequest(id="cli", name=name, input=arguments))


def _cmd_tools(args: argparse.Namespace) -> None:
    try:
        tools = asyncio.run(_list_tools(args.config))
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(2)

    if not tools:
        print("No tools available.")
        return
    for tool in tools:
        print(f"{tool['name']}: {tool['description']}")


def _cmd_call(args: argparse.Namespace) -> None:
    try:
        arguments = json.loads(args.args) if args.args else {}
    except json.JSONDecodeError as exc:
        print(f"Invalid --args JSON: {exc}", file=sys.stderr)
        sys.exit(2)
    if not isinstance(arguments, dict):
        print("--args must be a JSON object.", file=sys.stderr)
        sys.exit(2)

    try:
        result = asyncio.run(_call_tool(args.config, args.name, arguments))
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(2)

    print(result.output)
    module_logger.info(
        "Tool '%s' finished in %.1fms (error=%s).", args.name, result.duration_ms, result.is_error
    )
    if result.is_error:
        sys.exit(1)


# ── CLI parser construction ──────────────────────────────────────────────


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=f"{APP_NAME} v{APP_VERSION}")
    parser.add_argument(
        "--log-level",
        default=DEFAULT_LOG_LEVEL,
        help="File log level (debug, info, warning, error, critical)",
    )

    subparsers = parser.add_subparsers(dest="command")

    sp_presets = subparsers.add_parser("presets", help="List built-in tool server presets")
    sp_presets.set_defaults(func=_cmd_presets)

    sp_tools = subparsers.add_parser("tools", help="Connect to servers and list their tools")
    sp_tools.add_argument("--config", required=True, help="Path to the servers YAML file")
    sp_tools.set_defaults(func=_cmd_tools)

    sp_call = subparsers.add_parser("call", help="Execute one tool and print its output")
    sp_call.add_argument("--config", required=True, help="Path to the servers YAML file")
    sp_call.add_argument("name", help="Namespaced tool name (server__tool)")
    sp_call.add_argument("--args", default=None, help="Tool arguments as a JSON object")
    sp_call.set_defaults(func=_cmd_call)

    return parser


def main() -> None:
    """Program entry point: parse arguments and dispatch to subcommand."""
    parser = _build_parser()
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    log_fpath, log_lvl = setup_logging(args.log_level, quiet=True)
    module_logger.info(
        "---- %s v%s '%s' (file log: %s, level %s) ----",
        APP_NAME,
        APP_VERSION,
        args.command,
        log_fpath,
        log_lvl,
    )
    args.func(args)


if __name__ == "__main__":
    main()
