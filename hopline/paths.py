from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


CONFIG_FILE_NAME = "hopline.toml"
RUNTIME_DIR_NAME = ".hopline"


def find_workspace_root(start: Path | None = None) -> Path:
    """Best-effort workspace root discovery.

    The nearest directory holding `hopline.toml` wins. Without one, the start
    directory is used so the CLI still runs with defaults.
    """

    start_dir = (start or Path.cwd()).resolve()
    for candidate in [start_dir, *start_dir.parents]:
        if (candidate / CONFIG_FILE_NAME).exists():
            return candidate
    return start_dir


def workspace_root() -> Path:
    return find_workspace_root()


@dataclass(frozen=True)
class RuntimePaths:
    root: Path
    logs_dir: Path
    app_log: Path
    history_file: Path


def runtime_paths(root: Path | None = None) -> RuntimePaths:
    base = (root or workspace_root()) / RUNTIME_DIR_NAME
    logs_dir = base / "logs"
    return RuntimePaths(
        root=base,
        logs_dir=logs_dir,
        app_log=logs_dir / "app.log",
        history_file=base / "repl_history",
    )


def ensure_runtime_dirs(paths: RuntimePaths | None = None) -> RuntimePaths:
    paths = paths or runtime_paths()
    paths.root.mkdir(parents=True, exist_ok=True)
    paths.logs_dir.mkdir(parents=True, exist_ok=True)
    return paths
