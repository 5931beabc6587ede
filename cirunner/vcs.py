"""vcs.py — Remote ref lookup and cloning through the git CLI.

Two operations are needed by the watcher:

- :func:`resolve_ref` — a lightweight ``git ls-remote`` (no clone) returning the
  short hash of ``refs/heads/<branch>``.
- :func:`clone` — a full working tree of the branch in a given directory.

Both resolve credentials the same way (:func:`resolve_auth`) and hand them to
git through environment variables only, never on the command line.
"""

import base64
import contextlib
import os
import shlex
import subprocess
import tempfile
from collections.abc import Iterator
from dataclasses import dataclass, field, replace
from pathlib import Path

from cirunner.config import DEFAULT_BRANCH, SHORT_HASH_LEN, _console
from cirunner.errors import AuthError, CloneError, NetworkError, RefNotFoundError

# ls-remote should answer in seconds; a hung remote aborts the session.
_LS_REMOTE_TIMEOUT = 120


@dataclass(frozen=True)
class Repository:
    """The watched remote.  Fixed for the lifetime of one watch session."""

    url: str
    ref: str = DEFAULT_BRANCH
    private_key_file: str = ""
    username: str = ""
    password: str = field(default="", repr=False)


@dataclass(frozen=True)
class GitAuth:
    """Resolved credentials: ``none``, ``ssh`` or ``basic``."""

    method: str = "none"
    key_file: str = ""
    username: str = ""
    password: str = field(default="", repr=False)

    def env(self) -> dict[str, str]:
        """Return the environment variables that make git use these credentials."""
        if self.method == "ssh":
            cmd = f"ssh -i {shlex.quote(self.key_file)} -o IdentitiesOnly=yes"
            return {"GIT_SSH_COMMAND": cmd}
        if self.method == "basic":
            token = base64.b64encode(
                f"{self.username}:{self.password}".encode("utf-8")
            ).decode("ascii")
            # GIT_CONFIG_COUNT/KEY/VALUE injects config without touching argv.
            return {
                "GIT_CONFIG_COUNT": "1",
                "GIT_CONFIG_KEY_0": "http.extraHeader",
                "GIT_CONFIG_VALUE_0": f"Authorization: Basic {token}",
            }
        return {}


@contextlib.contextmanager
def _private_copy(key_file: str) -> Iterator[str]:
    """Yield a 0600 copy of *key_file*, removed on exit.

    ssh and ssh-keygen refuse keys readable by others, and mounted secrets
    are often 0644.
    """
    fd, tmp_name = tempfile.mkstemp(prefix="cacidy-key-")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(Path(key_file).read_bytes())
        os.chmod(tmp_name, 0o600)
        yield tmp_name
    finally:
        Path(tmp_name).unlink(missing_ok=True)


def _parse_private_key(key_file: str) -> None:
    """Raise AuthError unless *key_file* is a readable, unencrypted private key."""
    try:
        with _private_copy(key_file) as copy:
            result = subprocess.run(
                ["ssh-keygen", "-y", "-P", "", "-f", copy],
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                stdin=subprocess.DEVNULL,
            )
    except OSError as exc:
        raise AuthError(f"failed while parsing the private key: {exc}") from exc
    if result.returncode != 0:
        raise AuthError("failed while parsing the private key")


def resolve_auth(repo: Repository) -> GitAuth:
    """Pick the auth method for *repo*.

    A configured key file is always validated first.  A password then
    replaces whatever was chosen, so basic auth wins when both are set.
    """
    auth = GitAuth()
    if repo.private_key_file:
        if not Path(repo.private_key_file).is_file():
            raise AuthError("private key not found")
        _parse_private_key(repo.private_key_file)
        auth = GitAuth(method="ssh", key_file=repo.private_key_file)
    if repo.password:
        auth = GitAuth(method="basic", username=repo.username, password=repo.password)
    return auth


def _git_env(auth: GitAuth) -> dict[str, str]:
    env = dict(os.environ)
    # Never block on an interactive credential prompt.
    env["GIT_TERMINAL_PROMPT"] = "0"
    env.update(auth.env())
    return env


def _run_git(
    *args: str,
    auth: GitAuth,
    capture: bool = True,
    timeout: int | None = None,
) -> subprocess.CompletedProcess:
    """Run ``git <args>`` with *auth* applied.

    With ``capture=False`` git writes straight to the terminal.  SSH auth
    points git at a private copy of the key that lives only for this call.
    """
    kwargs: dict = {}
    if capture:
        kwargs.update(capture_output=True, text=True, encoding="utf-8", errors="replace")
    with contextlib.ExitStack() as stack:
        if auth.method == "ssh":
            auth = replace(auth, key_file=stack.enter_context(_private_copy(auth.key_file)))
        return subprocess.run(
            ["git", *args],
            env=_git_env(auth),
            stdin=subprocess.DEVNULL,
            timeout=timeout,
            **kwargs,
        )


def _find_head(listing: str, ref: str) -> str | None:
    """Return the full hash for exactly ``refs/heads/<ref>`` in ``ls-remote`` output."""
    wanted = f"refs/heads/{ref}"
    for line in listing.splitlines():
        parts = line.split("\t", 1)
        if len(parts) == 2 and parts[1].strip() == wanted:
            return parts[0].strip()
    return None


def resolve_ref(repo: Repository) -> str:
    """Return the short hash of the branch head on the remote, without cloning."""
    auth = resolve_auth(repo)
    try:
        result = _run_git(
            "ls-remote", "--heads", repo.url, auth=auth, timeout=_LS_REMOTE_TIMEOUT
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        raise NetworkError(f"failed getting the application checksum: {exc}") from exc
    if result.returncode != 0:
        raise NetworkError(
            f"failed getting the application checksum: {result.stderr.strip()}"
        )
    full = _find_head(result.stdout, repo.ref)
    if not full:
        raise RefNotFoundError("checksum not found")
    return full[:SHORT_HASH_LEN]


def clone(repo: Repository, dest: Path, commit: str | None = None) -> None:
    """Clone *repo*'s branch into *dest* (which may exist but must be empty).

    With *commit*, the tree is then checked out at that (short) hash, so a
    push landing between :func:`resolve_ref` and the clone is not picked up.

    A configured key file must exist even when a password overrides SSH auth;
    :func:`resolve_auth` enforces that before anything is fetched.
    """
    # No key path configured means no key precondition.  Do not add an
    # unconditional existence check here: it would make password-only
    # remotes impossible to clone.
    auth = resolve_auth(repo)
    if auth.method == "basic" and repo.private_key_file:
        _console.print(
            "[yellow]\\[git] Both --ssh-key-file and --password given; "
            "using basic auth.[/]"
        )
    _console.print(f"[dim]\\[git][/] Cloning [cyan]{repo.url}[/] ({repo.ref}) ...")
    try:
        result = _run_git(
            "clone", "--progress", "--branch", repo.ref, repo.url, str(dest),
            auth=auth,
            capture=False,
        )
    except OSError as exc:
        raise CloneError(f"failed cloning the application: {exc}") from exc
    if result.returncode != 0:
        raise CloneError(
            f"failed cloning the application: git clone exited with code {result.returncode}"
        )
    if not commit:
        return
    try:
        result = _run_git(
            "-C", str(dest), "checkout", "--quiet", "--detach", commit, auth=auth
        )
    except OSError as exc:
        raise CloneError(f"failed checking out {commit}: {exc}") from exc
    if result.returncode != 0:
        raise CloneError(f"failed checking out {commit}: {result.stderr.strip()}")
