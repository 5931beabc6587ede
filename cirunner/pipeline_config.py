"""pipeline_config.py — The per-repository ``cacidy.yaml`` descriptor."""

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from cirunner.config import PIPELINE_FILENAME
from cirunner.errors import ConfigError


@dataclass
class PipelineConfig:
    """Default module, function and extra flags for ``dagger call``.

    Expected format::

        module: github.com/acme/ci
        function: build
        flags:
          - --registry=ghcr.io
        withSource: true

    Every field is optional.
    """

    module: str | None = None
    function: str | None = None
    flags: list[str] = field(default_factory=list)
    with_source: bool = False


def _optional_str(data: dict, key: str, path: Path) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"{path}: '{key}' must be a string")
    return value or None


def load_pipeline_config(source_dir: Path) -> PipelineConfig:
    """Read ``<source_dir>/cacidy.yaml``.

    Raises:
        ConfigError: the file is missing, is not valid YAML, or a field has the
            wrong type.
    """
    path = Path(source_dir) / PIPELINE_FILENAME
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigError(f"pipeline descriptor not found: {path}") from exc
    except OSError as exc:
        raise ConfigError(f"cannot read {path}: {exc}") from exc

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {path}: {exc}") from exc

    if data is None:
        return PipelineConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a mapping at the top level")

    flags = data.get("flags") or []
    if not isinstance(flags, list):
        raise ConfigError(f"{path}: 'flags' must be a list of strings")
    if not all(isinstance(f, (str, int, float)) and not isinstance(f, bool) for f in flags):
        raise ConfigError(f"{path}: 'flags' must be a list of strings")

    with_source = data.get("withSource", False)
    if with_source is None:
        with_source = False
    if not isinstance(with_source, bool):
        raise ConfigError(f"{path}: 'withSource' must be a boolean")

    return PipelineConfig(
        module=_optional_str(data, "module", path),
        function=_optional_str(data, "function", path),
        flags=[str(f) for f in flags],
        with_source=with_source,
    )
