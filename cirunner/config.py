"""config.py — Global constants, environment overrides, and the Rich console."""

import os
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console

from cirunner.errors import StorageError

# force_terminal=True keeps Rich emitting ANSI even when stdout is piped to a
# log collector, so the runner's own lines stay coloured next to the
# pipeline engine's output.
_console = Console(force_terminal=True, legacy_windows=False)

# ── Pipeline engine binary ─────────────────────────────────────────────────────

# Path or name of the pipeline engine.  Override with CACIDY_ENGINE env var
# (e.g. inside a container where it lives at a non-standard location).
ENGINE_CMD: str = os.environ.get("CACIDY_ENGINE", "dagger")

# ── Watch loop ─────────────────────────────────────────────────────────────────

# Seconds between two polls of the remote.
SYNC_INTERVAL: int = 30

# Branch watched when --branch is not given.
DEFAULT_BRANCH: str = "master"

# Commit hashes are stored and compared in their short form.
SHORT_HASH_LEN: int = 7

# ── Persisted state ────────────────────────────────────────────────────────────

STATE_FILENAME = "state.json"
STATE_BUCKET = "app"
CHECKSUM_KEY = "checksum"

# ── Pipeline descriptor ────────────────────────────────────────────────────────

# Read from the root of the (cloned) source tree.
PIPELINE_FILENAME = "cacidy.yaml"


def data_dir() -> Path:
    """Return the per-user data directory, creating it if needed.

    ``$CACIDY_DATA_DIR`` wins over the default ``~/.local/cacidy``.
    """
    override = os.environ.get("CACIDY_DATA_DIR")
    path = Path(override) if override else Path.home() / ".local" / "cacidy"
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StorageError(f"cannot create data directory {path}: {exc}") from exc
    return path


# ── Invocation options ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class InvocationOptions:
    """Engine flags that come from the operator, not from the repository."""

    debug: bool = False
    progress: str | None = None

    @classmethod
    def from_env(cls, environ: dict | None = None) -> "InvocationOptions":
        """Read ``CACIDY_DEBUG`` (presence) and ``CACIDY_PROGRESS`` (value).

        Called once at the CLI boundary; everything below receives the result.
        """
        env = os.environ if environ is None else environ
        return cls(
            debug=bool(env.get("CACIDY_DEBUG")),
            progress=env.get("CACIDY_PROGRESS") or None,
        )
