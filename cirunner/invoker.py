"""invoker.py — Build and execute ``dagger call`` for one pipeline run."""

import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from rich.markup import escape

from cirunner.config import ENGINE_CMD, InvocationOptions, _console
from cirunner.errors import PipelineError
from cirunner.pipeline_config import load_pipeline_config


@dataclass(frozen=True)
class InvocationSpec:
    """Everything needed to render one engine command line."""

    source: str
    module: str | None = None
    function: str | None = None
    flags: tuple[str, ...] = field(default_factory=tuple)
    debug: bool = False
    progress: str | None = None


def render(spec: InvocationSpec) -> list[str]:
    """Return the engine arguments for *spec*, in a fixed order.

    ``call [-m MODULE] [--debug] [--progress MODE] --source PATH [FLAGS...] [FUNCTION]``
    """
    args = ["call"]
    if spec.module:
        args += ["-m", spec.module]
    if spec.debug:
        args.append("--debug")
    if spec.progress:
        args += ["--progress", spec.progress]
    args += ["--source", spec.source]
    args.extend(spec.flags)
    if spec.function:
        args.append(spec.function)
    return args


def run(spec: InvocationSpec, engine: str | None = None) -> None:
    """Execute the engine and block until it exits.

    The child inherits the environment and the terminal: its output is not
    captured.  There is no timeout.

    Raises:
        PipelineError: the engine could not be started or exited non-zero.
    """
    cmd = [engine or ENGINE_CMD, *render(spec)]
    _console.print(f"[dim]\\[pipeline][/] {escape(' '.join(cmd))}")
    try:
        returncode = subprocess.call(cmd)
    except OSError as exc:
        raise PipelineError(f"failed to start {cmd[0]}: {exc}") from exc
    if returncode != 0:
        raise PipelineError(
            f"pipeline exited with code {returncode}", returncode=returncode
        )


def build_spec(
    source: Path,
    module: str | None,
    function: str | None,
    flags: list[str],
    options: InvocationOptions,
) -> InvocationSpec:
    """Combine descriptor values with the operator's invocation options."""
    return InvocationSpec(
        source=str(source),
        module=module,
        function=function,
        flags=tuple(flags),
        debug=options.debug,
        progress=options.progress,
    )


def run_pipeline(
    source: Path,
    module: str | None = None,
    function: str | None = None,
    options: InvocationOptions | None = None,
) -> None:
    """Run the pipeline once for a local source tree (the ``run`` command).

    *module* and *function* override the values from ``cacidy.yaml``.
    """
    config = load_pipeline_config(source)
    spec = build_spec(
        source,
        module or config.module,
        function or config.function,
        config.flags,
        options or InvocationOptions(),
    )
    run(spec)
