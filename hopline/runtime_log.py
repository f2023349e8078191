"""Runtime log fan-out.

Every event goes to up to three sinks: a host callback (filtered by level), the
append-only ``.hopline/logs/app.log`` file, and the console.
"""

from __future__ import annotations

import contextlib
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
import sys
from typing import Callable


TRANSCRIPT_LEVELS = frozenset({"warn", "error"})


@dataclass(frozen=True)
class RuntimeHooks:
    log: Callable[[str, str], None] | None = None
    log_levels: frozenset[str] | None = None
    emit_console: bool = False
    log_file: Path | None = None

    def forwards(self, level: str) -> bool:
        return self.log is not None and (self.log_levels is None or level in self.log_levels)


def emit_runtime_log(
    message: str,
    *,
    level: str = "info",
    stderr: bool = False,
    hooks: RuntimeHooks | None = None,
) -> None:
    if hooks is None:
        return
    level = level.lower()
    if hooks.forwards(level):
        hooks.log(level, message)
    if hooks.log_file is not None:
        _write_log_line(hooks.log_file, level, message)
    if hooks.emit_console:
        print(message, file=sys.stderr if stderr else sys.stdout)


def _write_log_line(log_file: Path, level: str, message: str) -> None:
    stamp = datetime.now(tz=timezone.utc).replace(microsecond=0).isoformat()
    # One event per line; embedded newlines would split it.
    flat = " ".join(message.split())
    with contextlib.suppress(OSError):
        log_file.parent.mkdir(parents=True, exist_ok=True)
        with log_file.open("a", encoding="utf-8") as handle:
            handle.write(f"{stamp} [{level}] {flat}\n")


def hooks_with_log_file(hooks: RuntimeHooks | None, log_file: Path) -> RuntimeHooks:
    """Attach ``log_file`` unless the hooks already write somewhere."""

    if hooks is None:
        return RuntimeHooks(log_file=log_file)
    return hooks if hooks.log_file is not None else replace(hooks, log_file=log_file)
