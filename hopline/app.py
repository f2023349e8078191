from __future__ import annotations

import asyncio
import contextlib
import time

from textual import events
from textual.app import App, ComposeResult
from textual.widgets import Footer, Input, RichLog, Static

from . import __version__
from .cli import Workspace, build_session, load_workspace
from .commands import ChatSession
from .formatting import style_value
from .line_input import LineInput
from .runtime_log import TRANSCRIPT_LEVELS, RuntimeHooks


STATUS_REFRESH_INTERVAL_S = 0.5
COMMAND_PLACEHOLDER = "Type a command (help for the list)."


class HoplineTerminalApp(App[None]):
    CSS = """
    Screen {
        layout: vertical;
    }

    #status-bar {
        dock: top;
        height: 1;
        padding: 0 1;
        background: $boost;
        color: $text;
    }

    #transcript {
        height: 1fr;
        border: solid $accent;
        padding: 0 1;
    }

    #input-box {
        dock: bottom;
        margin: 1 0 0 0;
    }
    """

    BINDINGS = [
        ("ctrl+c", "request_quit", "Quit"),
    ]

    def __init__(self, *, workspace: Workspace | None = None) -> None:
        super().__init__()
        self.workspace = workspace
        self.started_at = time.monotonic()
        self.line_input = LineInput(prompt=COMMAND_PLACEHOLDER)
        self.session: ChatSession | None = None
        self.command_task: asyncio.Task[None] | None = None
        self.completion_matches: list[str] = []
        self.completion_index = -1

    def compose(self) -> ComposeResult:
        yield Static("", id="status-bar")
        yield RichLog(id="transcript", wrap=True, highlight=False, markup=True, auto_scroll=True)
        yield Input(id="input-box", placeholder=COMMAND_PLACEHOLDER)
        yield Footer()

    def on_mount(self) -> None:
        self.status_bar = self.query_one("#status-bar", Static)
        self.transcript = self.query_one("#transcript", RichLog)
        self.input_box = self.query_one("#input-box", Input)
        self.input_box.focus()

        workspace = self.workspace or load_workspace()
        hooks = RuntimeHooks(log=self._on_runtime_log, log_levels=TRANSCRIPT_LEVELS)
        self.session, warnings = build_session(workspace, line_input=self.line_input, say=self._write, hooks=hooks)
        self.line_input.completer = self.session.complete
        self.line_input.on_line(self._on_line)
        self._write(style_value(f"hopline {__version__}; you are {self.session.node.self_id}", "highlight"))
        self._write(style_value("Type 'help' for a list of commands.", "highlight"))
        for warning in warnings:
            self._write(style_value(f"warning: {warning}", "failure"))

        self.set_interval(STATUS_REFRESH_INTERVAL_S, self._refresh_status)
        self._refresh_status()

    async def on_unmount(self) -> None:
        await _cancel_task(self.command_task)

    async def action_request_quit(self) -> None:
        # Cancelling the command also releases any takeover it holds.
        await _cancel_task(self.command_task)
        self.exit()

    def on_key(self, event: events.Key) -> None:
        if event.key != "tab" or not self.input_box.has_focus:
            return
        event.stop()
        self._apply_tab_completion()

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.value not in self.completion_matches:
            self.completion_matches = []
            self.completion_index = -1

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        text = event.value
        event.input.value = ""
        if self.line_input.taken_over:
            self._write(f"[dim]>[/dim] {style_value(text)}")
        elif text.strip():
            self._write(f"[bold]You:[/bold] {style_value(text)}")
        await self.line_input.submit(text)

    def _on_line(self, line: str | None) -> None:
        if line is None or self.session is None or not line.strip():
            return
        if self.command_task is not None and not self.command_task.done():
            self._write(style_value("A command is still running; wait for it to finish.", "failure"))
            return
        self.command_task = asyncio.create_task(self._run_command(line))

    async def _run_command(self, line: str) -> None:
        assert self.session is not None
        try:
            result = await self.session.execute(line)
        except Exception as exc:  # noqa: BLE001
            self._write(style_value(f"command failed: {exc}", "failure"))
            return
        if result:
            self._write(result)
        if self.session.quit_requested:
            self.exit()

    def _apply_tab_completion(self) -> None:
        value = self.input_box.value
        if self.completion_matches and value in self.completion_matches:
            self.completion_index = (self.completion_index + 1) % len(self.completion_matches)
        else:
            self.completion_matches = self.line_input.complete(value)
            self.completion_index = 0
        if not self.completion_matches:
            return
        completed = self.completion_matches[self.completion_index]
        self.input_box.value = completed
        self.input_box.cursor_position = len(completed)

    def _write(self, text: str) -> None:
        self.transcript.write(text)

    def _on_runtime_log(self, level: str, message: str) -> None:
        self._write(style_value(f"runtime[{level}]: {message}", "muted"))

    def _refresh_status(self) -> None:
        uptime_s = int(time.monotonic() - self.started_at)
        if self.line_input.taken_over:
            mode = "prompt"
            placeholder = self.line_input.prompt or "Answer the prompt above (empty line to finish)."
        else:
            mode = "busy" if self.command_task is not None and not self.command_task.done() else "idle"
            placeholder = COMMAND_PLACEHOLDER
        routing = self.session.state.routing if self.session is not None else "?"
        self.status_bar.update(f"mode={mode} | routing={routing} | uptime={uptime_s}s")
        self.input_box.placeholder = placeholder


def run_terminal_app() -> int:
    app = HoplineTerminalApp()
    app.run()
    return 0


async def _cancel_task(task: asyncio.Task[None] | None) -> None:
    if task is None or task.done():
        return
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
