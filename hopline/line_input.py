from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
import inspect
from typing import Any

from .errors import LineInputBusy


# A handler receives each submitted line; None signals end of input.
LineHandler = Callable[[str | None], Any]
Completer = Callable[[str], list[str]]


@dataclass(frozen=True)
class InputSnapshot:
    prompt: str
    completer: Completer | None
    handlers: tuple[LineHandler, ...]


def prefix_completer(candidates: Iterable[str]) -> Completer:
    options = list(candidates)

    def _complete(line: str) -> list[str]:
        return [option for option in options if option.startswith(line)]

    return _complete


class LineTakeover:
    """Reader side of an exclusive takeover of a :class:`LineInput`."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._waiting = False

    @property
    def waiting(self) -> bool:
        return self._waiting

    def deliver(self, line: str | None) -> None:
        self._waiting = False
        self._queue.put_nowait(line)

    async def read_line(self) -> str | None:
        if not self._queue.empty():
            return self._queue.get_nowait()
        self._waiting = True
        try:
            return await self._queue.get()
        finally:
            self._waiting = False


class LineInput:
    """Line-oriented input shared by the REPL and whatever prompt borrows it.

    Hosts (the readline REPL, the textual app) pump typed lines into
    :meth:`submit` and render :attr:`prompt`; tab completion goes through
    :meth:`complete`.
    """

    def __init__(self, prompt: str = "", completer: Completer | None = None) -> None:
        self.prompt = prompt
        self.completer = completer
        self.closed = False
        self._handlers: list[LineHandler] = []
        self._active: LineTakeover | None = None

    def on_line(self, handler: LineHandler) -> None:
        self._handlers.append(handler)

    def remove_all_line_handlers(self) -> None:
        self._handlers = []

    def line_handlers(self) -> tuple[LineHandler, ...]:
        return tuple(self._handlers)

    @property
    def taken_over(self) -> bool:
        return self._active is not None

    @property
    def awaiting_line(self) -> bool:
        return self._active is not None and self._active.waiting

    def snapshot(self) -> InputSnapshot:
        return InputSnapshot(prompt=self.prompt, completer=self.completer, handlers=tuple(self._handlers))

    def restore(self, snapshot: InputSnapshot) -> None:
        self.prompt = snapshot.prompt
        self.completer = snapshot.completer
        self._handlers = list(snapshot.handlers)

    def complete(self, text: str) -> list[str]:
        if self.completer is None:
            return []
        return list(self.completer(text))

    async def submit(self, line: str | None) -> None:
        if line is None:
            self.closed = True
        for handler in list(self._handlers):
            result = handler(line)
            if inspect.isawaitable(result):
                await result

    @contextmanager
    def takeover(self, *, prompt: str = "", completer: Completer | None = None) -> Iterator[LineTakeover]:
        """Swap prompt, completer and line handlers for the duration of the block.

        The previous values are restored on every exit path. Only one takeover
        may be active at a time.
        """

        if self._active is not None:
            raise LineInputBusy("Line input is already in use by another prompt.")
        snapshot = self.snapshot()
        session = LineTakeover()
        if self.closed:
            session.deliver(None)
        self._active = session
        self.prompt = prompt
        self.completer = completer
        self._handlers = [session.deliver]
        try:
            yield session
        finally:
            self.restore(snapshot)
            self._active = None

    async def question(self, text: str) -> str | None:
        with self.takeover(prompt=text) as session:
            return await session.read_line()
