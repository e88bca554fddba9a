"""Command-line entry point: pick a front-end and run it."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Callable, Optional

from mcdcoupon import __version__
from mcdcoupon.config import load_settings
from mcdcoupon.main import Core, build_core, configure_logging, run_html, run_mcp_server, run_tui

MODE_ALIASES: dict[str, str] = {
    "tui": "tui",
    "1": "tui",
    "html": "html",
    "web": "html",
    "2": "html",
    "mcpserver": "mcpserver",
    "mcp-server": "mcpserver",
    "3": "mcpserver",
}

MENU_CHOICES: dict[str, str] = {
    "": "html",
    "1": "html",
    "html": "html",
    "web": "html",
    "2": "tui",
    "tui": "tui",
    "3": "mcpserver",
    "mcpserver": "mcpserver",
    "mcp-server": "mcpserver",
}

MENU_TEXT = """
mcd-coupon: choose a mode

  [1] Web UI (opens in your browser)
  [2] Terminal UI
  [3] MCP server (JSON-RPC tools for AI agents)
"""

RUNNERS: dict[str, Callable[[Core], int]] = {
    "html": run_html,
    "tui": run_tui,
    "mcpserver": run_mcp_server,
}


def normalize_mode(raw: str) -> Optional[str]:
    return MODE_ALIASES.get(raw.strip().lower().lstrip("-"))


def choose_mode(read_line: Callable[[str], str] = input) -> str:
    """Interactive menu; blank or unrecognized input falls back to the web UI."""
    print(MENU_TEXT)
    try:
        answer = read_line("Select [1/2/3] (default 1): ")
    except EOFError:
        answer = ""
    mode = MENU_CHOICES.get(answer.strip().lower())
    if mode is None:
        print("Unrecognized option, starting the web UI...")
        return "html"
    return mode


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcd-coupon",
        description="Fetch and claim loyalty-platform coupons.",
        epilog="Modes: html (web UI), tui (terminal UI), mcpserver (JSON-RPC tool server). "
        "Without a mode an interactive menu is shown.",
    )
    parser.add_argument("mode", nargs="?", help="html | tui | mcpserver")
    parser.add_argument("--config", type=Path, default=None, help="YAML settings file (default: ./config.yaml).")
    parser.add_argument("--log-level", default=None, help="Logging level, e.g. DEBUG or INFO.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point for the CLI."""
    parser = build_parser()
    # Leading-dash aliases such as ``--tui`` are accepted as the mode.
    args, extra = parser.parse_known_args(argv)
    mode_arg = args.mode
    if extra:
        if mode_arg is not None or len(extra) > 1 or normalize_mode(extra[0]) is None:
            parser.error(f"unrecognized arguments: {' '.join(extra)}")
        mode_arg = extra[0]

    if mode_arg is not None and mode_arg.strip().lower().lstrip("-") == "help":
        parser.print_help()
        return 0

    if mode_arg is None:
        mode = choose_mode()
    else:
        mode = normalize_mode(mode_arg)
        if mode is None:
            parser.error(f"unknown mode: {mode_arg}")

    config_path = args.config
    if config_path is None and Path("config.yaml").exists():
        config_path = Path("config.yaml")
    settings = load_settings(config_path)
    configure_logging(args.log_level or settings.log_level)

    core = build_core(settings)
    return RUNNERS[mode](core)


if __name__ == "__main__":
    raise SystemExit(main())
