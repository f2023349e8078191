"""Plain readline REPL host.

Lines typed at the terminal are pumped into the shared LineInput. Commands
run as tasks so a command that asks for more input (a message body, relay
peers) receives the following lines through its own takeover.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any

from rich.console import Console

from .commands import ChatSession
from .formatting import style_value
from .line_input import LineInput
from .paths import RuntimePaths
from .runtime_log import RuntimeHooks, emit_runtime_log


DEFAULT_PROMPT = "hopline> "
REPL_HISTORY_LIMIT = 500
TURN_POLL_INTERVAL_S = 0.02


class TerminalRepl:
    def __init__(
        self,
        *,
        line_input: LineInput,
        console: Console,
        paths: RuntimePaths | None = None,
        hooks: RuntimeHooks | None = None,
    ) -> None:
        self.line_input = line_input
        self.console = console
        self.paths = paths
        self.hooks = hooks
        self.session: ChatSession | None = None
        self._command_task: asyncio.Task[None] | None = None
        self._readline: Any = None
        self._matches: list[str] = []

    def say(self, text: str) -> None:
        self.console.print(text, highlight=False)

    def attach(self, session: ChatSession) -> None:
        self.session = session
        self.line_input.prompt = DEFAULT_PROMPT
        self.line_input.completer = session.complete
        self.line_input.remove_all_line_handlers()
        self.line_input.on_line(self._on_line)

    def _on_line(self, line: str | None) -> None:
        if line is None or self.session is None:
            return
        if self._command_task is not None and not self._command_task.done():
            self.say(style_value("A command is still running; wait for it to finish.", "failure"))
            return
        self._command_task = asyncio.create_task(self._run_command(line))

    async def _run_command(self, line: str) -> None:
        assert self.session is not None
        try:
            result = await self.session.execute(line)
        except Exception as exc:  # noqa: BLE001
            emit_runtime_log(f"command crashed: {exc}", level="error", hooks=self.hooks)
            self.say(style_value(f"command failed: {exc}", "failure"))
            return
        if result:
            self.say(result)

    async def _wait_for_turn(self) -> None:
        while self._command_task is not None and not self._command_task.done():
            if self.line_input.awaiting_line:
                return
            await asyncio.sleep(TURN_POLL_INTERVAL_S)

    def _complete(self, _text: str, state: int) -> str | None:
        if state == 0:
            readline = self._readline
            buffer = readline.get_line_buffer()[: readline.get_endidx()]
            begidx = readline.get_begidx()
            self._matches = [match[begidx:] for match in self.line_input.complete(buffer) if len(match) >= begidx]
        if state < len(self._matches):
            return self._matches[state]
        return None

    def _setup_readline(self) -> None:
        try:
            import readline
        except ModuleNotFoundError:
            return
        readline.set_completer(self._complete)
        readline.set_completer_delims(" ")
        readline.parse_and_bind("tab: complete")
        readline.set_history_length(REPL_HISTORY_LIMIT)
        if self.paths is not None and self.paths.history_file.exists():
            with contextlib.suppress(Exception):
                readline.read_history_file(str(self.paths.history_file))
        self._readline = readline

    def _save_history(self) -> None:
        if self._readline is None or self.paths is None:
            return
        with contextlib.suppress(Exception):
            self.paths.history_file.parent.mkdir(parents=True, exist_ok=True)
            self._readline.write_history_file(str(self.paths.history_file))

    async def run(self) -> int:
        if self.session is None:
            raise RuntimeError("attach a ChatSession before running the REPL")
        self._setup_readline()
        self.say(style_value("Type 'help' for a list of commands.", "highlight"))
        try:
            while not self.session.quit_requested:
                try:
                    line = await asyncio.to_thread(input, self.line_input.prompt)
                except EOFError:
                    await self.line_input.submit(None)
                    break
                await self.line_input.submit(line)
                await asyncio.sleep(0)
                await self._wait_for_turn()
            if self._command_task is not None:
                await self._command_task
        finally:
            self._save_history()
        return 0
