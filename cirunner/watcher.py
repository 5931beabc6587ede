"""watcher.py — Poll a remote branch and run the pipeline on every new commit.

One cycle::

    POLLING ──► UNCHANGED  ──────────────────────────┐
        │                                            ▼
        └─────► TRIGGERING (clone → config → run) ─► PERSISTING ─► SLEEPING ─► POLLING

Any error moves the watcher to ABORTED and ends the session.  Nothing is
retried: the operator restarts the process.
"""

import shutil
import tempfile
import time
from collections.abc import Callable
from enum import Enum
from pathlib import Path

from cirunner import vcs
from cirunner.config import SYNC_INTERVAL, InvocationOptions, _console
from cirunner.errors import CloneError, ConfigError
from cirunner.invoker import build_spec, run
from cirunner.pipeline_config import load_pipeline_config
from cirunner.state import ChecksumStore, state_path


class WatchState(Enum):
    INIT = "init"
    POLLING = "polling"
    UNCHANGED = "unchanged"
    TRIGGERING = "triggering"
    PERSISTING = "persisting"
    SLEEPING = "sleeping"
    ABORTED = "aborted"


class Watcher:
    """Single sequential watch loop over one repository/branch."""

    def __init__(
        self,
        repo: vcs.Repository,
        store: ChecksumStore,
        *,
        options: InvocationOptions | None = None,
        interval: float = SYNC_INTERVAL,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.repo = repo
        self.store = store
        self.options = options or InvocationOptions()
        self.interval = interval
        self._sleep = sleep or time.sleep
        self.state = WatchState.INIT

    def validate(self) -> None:
        """Fail before the first poll if the URL or branch is missing."""
        if not self.repo.url or not self.repo.ref:
            self.state = WatchState.ABORTED
            raise ConfigError("git repository and branch are required")

    def _trigger(self, checksum: str) -> None:
        """Clone, load the descriptor and run the pipeline for *checksum*.

        The clone directory is removed whether the run succeeds or not.
        """
        _console.print(f"[bold]\\[{checksum}][/] starting pipeline...")
        try:
            src = Path(tempfile.mkdtemp(prefix="cacidy-src-"))
        except OSError as exc:
            raise CloneError(f"cannot create clone directory: {exc}") from exc
        try:
            vcs.clone(self.repo, src, checksum)
            config = load_pipeline_config(src)
            run(
                build_spec(
                    src, config.module, config.function, config.flags, self.options
                )
            )
        finally:
            try:
                shutil.rmtree(src)
            except OSError as exc:
                raise CloneError(f"failed removing clone directory {src}: {exc}") from exc
        _console.print(f"[green]\\[{checksum}] pipeline succeeded[/]")

    def poll_once(self) -> WatchState:
        """Run one Polling → (Unchanged | Triggering) → Persisting pass.

        Returns UNCHANGED when no pipeline ran (first baseline or same hash)
        and TRIGGERING when one ran.  On error nothing is persisted.
        """
        self.state = WatchState.POLLING
        checksum = vcs.resolve_ref(self.repo)
        stored = self.store.load()

        if stored is None:
            _console.print(f"[dim]\\[listen][/] Baseline at [cyan]{checksum}[/]")
            outcome = WatchState.UNCHANGED
        elif stored != checksum:
            self.state = WatchState.TRIGGERING
            self._trigger(checksum)
            outcome = WatchState.TRIGGERING
        else:
            outcome = WatchState.UNCHANGED

        self.state = WatchState.PERSISTING
        self.store.save(checksum)
        return outcome

    def listen(self) -> None:
        """Poll forever.  Only returns by raising."""
        self.validate()
        _console.print(
            f"[bold]Starting listener[/] on [cyan]{self.repo.url}[/] "
            f"branch [cyan]{self.repo.ref}[/]"
        )
        try:
            while True:
                self.poll_once()
                self.state = WatchState.SLEEPING
                self._sleep(self.interval)
        except Exception:
            self.state = WatchState.ABORTED
            raise


def listen(
    data_dir: Path,
    repo: vcs.Repository,
    options: InvocationOptions | None = None,
) -> None:
    """Watch *repo* with its checksum kept in ``<data_dir>/state.json``."""
    Watcher(repo, ChecksumStore(state_path(data_dir)), options=options).listen()
