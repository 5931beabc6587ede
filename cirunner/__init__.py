"""cirunner — Change-triggered CI runner.

Per new commit on the watched branch: Clone → Load cacidy.yaml → dagger call → Clean up → Persist checksum.
"""

from cirunner.cli import main

__all__ = ["main"]
