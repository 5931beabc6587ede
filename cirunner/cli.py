"""cli.py — ``run`` and ``listen`` subcommands."""

import argparse
import sys
from pathlib import Path

from rich.markup import escape

from cirunner.config import DEFAULT_BRANCH, InvocationOptions, _console, data_dir
from cirunner.errors import CacidyError


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cacidy",
        description="Call a pipeline function whenever a git branch changes.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run_p = sub.add_parser("run", help="run a ci function")
    run_p.add_argument("--source", required=True, help="target application source code")
    run_p.add_argument("--module", help="ci pipeline module")
    run_p.add_argument("--function", help="ci pipeline module function")

    listen_p = sub.add_parser(
        "listen",
        help="listen for changes to a git repository and call a pipeline function",
    )
    listen_p.add_argument("url", nargs="?", default="", help="git repository url")
    listen_p.add_argument(
        "--branch", default=DEFAULT_BRANCH, help="git repository branch to listen on"
    )
    listen_p.add_argument("--ssh-key-file", default="", help="git repository private key path")
    listen_p.add_argument("--username", default="", help="git repository username")
    listen_p.add_argument("--password", default="", help="git repository password")
    return parser


def _cmd_run(args: argparse.Namespace, options: InvocationOptions) -> None:
    from cirunner.invoker import run_pipeline  # noqa: PLC0415

    run_pipeline(Path(args.source), args.module, args.function, options)


def _cmd_listen(args: argparse.Namespace, options: InvocationOptions) -> None:
    from cirunner.vcs import Repository  # noqa: PLC0415
    from cirunner.watcher import listen  # noqa: PLC0415

    repo = Repository(
        url=args.url,
        ref=args.branch,
        private_key_file=args.ssh_key_file,
        username=args.username,
        password=args.password,
    )
    listen(data_dir(), repo, options)


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, dispatch, and turn runner errors into an exit code."""
    args = _build_parser().parse_args(argv)
    options = InvocationOptions.from_env()
    handler = _cmd_run if args.command == "run" else _cmd_listen
    try:
        handler(args, options)
    except CacidyError as exc:
        _console.print(f"[red bold]ERRO[/] {escape(str(exc))}", highlight=False)
        return 1
    except KeyboardInterrupt:
        _console.print("\n[yellow]Stopped.[/]")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
