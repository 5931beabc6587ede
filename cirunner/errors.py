"""errors.py — Error kinds raised by the runner.

None of these are retried internally: whichever command raised one stops,
and the CLI reports it and exits non-zero.
"""


class CacidyError(RuntimeError):
    """Base class for every failure the runner reports to the operator."""


class ConfigError(CacidyError):
    """Missing or malformed pipeline descriptor, or missing watch parameters."""


class AuthError(CacidyError):
    """Private key missing or unparsable."""


class NetworkError(CacidyError):
    """Listing the remote's refs failed."""


class RefNotFoundError(NetworkError):
    """The remote has no ``refs/heads/<branch>``."""


class CloneError(CacidyError):
    """Materialising the working tree failed."""


class PipelineError(CacidyError):
    """The pipeline engine could not be launched or exited non-zero."""

    def __init__(self, message: str, returncode: int | None = None) -> None:
        super().__init__(message)
        self.returncode = returncode


class StorageError(CacidyError):
    """The checksum state file could not be read or written."""
