from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass
import os
from pathlib import Path
import sys
from typing import Callable

from rich.console import Console

from . import __version__
from .commands import ChatSession, chat_state_from_config
from .config import HoplineConfig, explain_config, load_hopline_toml
from .ens import resolve_ens_name
from .errors import HoplineError
from .formatting import style_value
from .line_input import LineInput
from .node import SandboxNode
from .path_selector import PathSelection
from .paths import CONFIG_FILE_NAME, RuntimePaths, ensure_runtime_dirs, runtime_paths, workspace_root
from .peer_id import EnsResolver, PeerId
from .runtime_log import RuntimeHooks, emit_runtime_log, hooks_with_log_file
from .terminal import TerminalRepl


@dataclass(frozen=True)
class Workspace:
    root: Path
    config_path: Path
    config: HoplineConfig
    paths: RuntimePaths
    warnings: tuple[str, ...] = ()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hopline",
        description="hopline: chat with peers over payment channels, one relay hop at a time",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    sub = parser.add_subparsers(dest="cmd", required=False)

    sub.add_parser("app", help="Start the interactive terminal app.")
    sub.add_parser("repl", help="Start the plain readline chat prompt.")
    sub.add_parser("channels", help="List the local node's open channels.")

    send = sub.add_parser("send", help="Send a single message and exit.")
    send.add_argument("--to", required=True, help="Peer address, alias, or ENS name")
    send.add_argument("--message", required=True, help="Message text")
    send.add_argument("--via", default="", help="Comma-separated intermediate peers, in hop order")

    sub.add_parser("config", help="Explain hopline.toml and the effective settings.")

    return parser


def load_workspace(root: Path | None = None) -> Workspace:
    base = root or workspace_root()
    path = base / CONFIG_FILE_NAME
    config, warning = load_hopline_toml(path)
    paths = ensure_runtime_dirs(runtime_paths(base))
    return Workspace(
        root=base,
        config_path=path,
        config=config,
        paths=paths,
        warnings=(warning,) if warning else (),
    )


def _ens_resolver(config: HoplineConfig) -> EnsResolver | None:
    if not config.ens.enabled:
        return None
    rpc_urls = list(config.ens.rpc_urls)
    return lambda name: resolve_ens_name(name, rpc_urls)


def build_session(
    workspace: Workspace,
    *,
    line_input: LineInput,
    say: Callable[[str], None],
    hooks: RuntimeHooks | None = None,
) -> tuple[ChatSession, list[str]]:
    """Wire a chat session to a sandbox node built from the workspace config."""

    hooks = hooks_with_log_file(hooks, workspace.paths.app_log)
    node, node_warnings = SandboxNode.from_config(workspace.config, hooks=hooks)
    state, state_warnings = chat_state_from_config(workspace.config)
    session = ChatSession(
        node=node,
        line_input=line_input,
        say=say,
        state=state,
        config_path=workspace.config_path,
        resolve_ens=_ens_resolver(workspace.config),
        hooks=hooks,
    )
    warnings = [*workspace.warnings, *node_warnings, *state_warnings]
    for warning in warnings:
        emit_runtime_log(warning, level="warn", hooks=hooks)
    return session, warnings


def _terminal_text_ui_unavailable_reason() -> str:
    if os.environ.get("TERM", "").strip().lower() == "dumb":
        return "TERM=dumb"
    if not sys.stdin.isatty() or not sys.stdout.isatty():
        return "not a tty"
    return ""


def _run_terminal_app_entry() -> int:
    from .app import run_terminal_app

    return run_terminal_app()


def cmd_app(args: argparse.Namespace) -> int:
    reason = _terminal_text_ui_unavailable_reason()
    if reason:
        print(f"terminal app unavailable ({reason}); using the plain prompt.", file=sys.stderr)
        return cmd_repl(args)

    try:
        return _run_terminal_app_entry()
    except ModuleNotFoundError as exc:
        if exc.name == "textual":
            print("terminal app requires `textual`; using the plain prompt.", file=sys.stderr)
            return cmd_repl(args)
        raise


def cmd_repl(args: argparse.Namespace) -> int:
    workspace = load_workspace()
    console = Console()
    line_input = LineInput()
    repl = TerminalRepl(line_input=line_input, console=console, paths=workspace.paths)
    session, warnings = build_session(workspace, line_input=line_input, say=repl.say)
    for warning in warnings:
        repl.say(style_value(f"warning: {warning}", "failure"))
    repl.attach(session)
    try:
        return asyncio.run(repl.run())
    except KeyboardInterrupt:
        return 130


def cmd_channels(args: argparse.Namespace) -> int:
    workspace = load_workspace()
    console = Console()
    session, _warnings = build_session(workspace, line_input=LineInput(), say=console.print)
    console.print(asyncio.run(session.cmd_open_channels("")), highlight=False)
    return 0


def cmd_send(args: argparse.Namespace) -> int:
    workspace = load_workspace()
    console = Console()
    session, _warnings = build_session(workspace, line_input=LineInput(), say=console.print)

    selection = PathSelection(session.node.max_hops)
    excluded_self = None if session.state.allow_self_hop else session.node.self_id
    try:
        peer = session.parse_peer(args.to)
        for item in args.via.split(","):
            if item.strip():
                selection.add(session.parse_peer(item), peer, self_id=excluded_self)
    except HoplineError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    async def _fixed_path() -> list[PeerId]:
        return list(selection.peers)

    try:
        asyncio.run(session.send(peer, args.message, path_provider=_fixed_path if len(selection) else None))
    except HoplineError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    console.print(style_value(f"Message sent to {peer}.", "success"), highlight=False)
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    workspace = load_workspace()
    print(explain_config(workspace.config, path=workspace.config_path))
    for warning in workspace.warnings:
        print(f"warning: {warning}", file=sys.stderr)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    argv = list(argv) if argv is not None else list(sys.argv[1:])
    if not argv:
        argv = ["app"]
    args = parser.parse_args(argv)

    handlers = {
        "app": cmd_app,
        "repl": cmd_repl,
        "channels": cmd_channels,
        "send": cmd_send,
        "config": cmd_config,
    }
    handler = handlers.get(args.cmd)
    if handler is None:
        parser.error(f"Unknown command: {args.cmd}")
        return 2

    try:
        return handler(args)
    except KeyboardInterrupt:
        return 130
    except Exception as exc:  # noqa: BLE001
        print(f"hopline {args.cmd} failed: {exc}", file=sys.stderr)
        return 1
