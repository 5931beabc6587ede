"""cacidy.py — Entry point. All logic lives in the cirunner/ package.

Run with:
    python cacidy.py run --source ./app [--module M] [--function F]
    python cacidy.py listen https://github.com/acme/app.git [--branch main]
or, after pip install -e .:
    cacidy ...

Environment:
    CACIDY_ENGINE     Pipeline engine binary (default: dagger).
    CACIDY_DATA_DIR   Where the checksum state lives (default: ~/.local/cacidy).
    CACIDY_DEBUG      Any non-empty value adds --debug to every engine call.
    CACIDY_PROGRESS   Passed to the engine as --progress <value>.
"""

import sys


def _cli() -> None:
    """Delegate to the cirunner CLI and exit with its status."""
    from cirunner import main

    sys.exit(main())


if __name__ == "__main__":
    _cli()
