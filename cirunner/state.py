"""state.py — Persistence of the last processed commit checksum.

The state file is a tiny JSON key-value store holding one bucket::

    {"app": {"checksum": "3f2a9c1"}}

It is opened and closed inside every call, so other tools can inspect it
between polls.
"""

import json
import os
import tempfile
from pathlib import Path

from cirunner.config import CHECKSUM_KEY, STATE_BUCKET, STATE_FILENAME
from cirunner.errors import StorageError


def state_path(data_dir: Path) -> Path:
    """Return ``<data_dir>/state.json``."""
    return data_dir / STATE_FILENAME


class ChecksumStore:
    """Single-bucket key-value file for "last commit seen" per watch session."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _read(self) -> dict:
        """Load the whole file; a missing file is an empty store."""
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(f"cannot read state file {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageError(f"state file {self.path} is not a JSON object")
        return data

    def load(self, key: str = CHECKSUM_KEY) -> str | None:
        """Return the stored value for *key*, or None if it was never saved."""
        bucket = self._read().get(STATE_BUCKET)
        if not isinstance(bucket, dict):
            return None
        value = bucket.get(key)
        return str(value) if value else None

    def save(self, value: str, key: str = CHECKSUM_KEY) -> None:
        """Upsert *key* = *value*, creating the file and bucket on first use.

        The file is replaced atomically so a crash mid-write never leaves a
        truncated store behind.
        """
        data = self._read()
        bucket = data.get(STATE_BUCKET)
        if not isinstance(bucket, dict):
            bucket = {}
        bucket[key] = value
        data[STATE_BUCKET] = bucket

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", dir=self.path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(data, fh, indent=2)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StorageError(f"cannot write state file {self.path}: {exc}") from exc
