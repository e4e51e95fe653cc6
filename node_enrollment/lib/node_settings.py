"""Load the local node configuration file into a NodeState."""

from pathlib import Path
from typing import Any

import yaml

from node_enrollment.lib.config import EnrollmentConfig
from node_enrollment.lib.errors import NodeConfigError
from node_enrollment.lib.models import NodeState


def flatten_settings(settings: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten nested mappings into dotted keys.

    ``{"security": {"http.ssl": {"enabled": True}}}`` becomes
    ``{"security.http.ssl.enabled": True}``.
    """
    flat: dict[str, Any] = {}
    for key, value in settings.items():
        name = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(flatten_settings(value, prefix=f"{name}."))
        else:
            flat[name] = value
    return flat


def _resolve_data_paths(raw: Any, home_dir: Path) -> list[Path]:
    if raw is None:
        return [home_dir / "data"]
    entries = raw if isinstance(raw, list) else [raw]
    paths = []
    for entry in entries:
        path = Path(str(entry))
        paths.append(path if path.is_absolute() else home_dir / path)
    return paths


def load_node_state(config_dir: Path, config: EnrollmentConfig | None = None) -> NodeState:
    """Read the node configuration file under config_dir.

    A missing file is treated as an empty configuration. The node home is the
    parent of the configuration directory; relative data paths resolve
    against it.

    Raises:
        NodeConfigError: If the file is not valid YAML or its root is not a mapping
    """
    config = config or EnrollmentConfig()
    config_file = config_dir / config.node_config_file

    raw_settings: Any = {}
    if config_file.exists():
        try:
            raw_settings = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            raise NodeConfigError(f"cannot read {config_file}: {e}") from e

    if not isinstance(raw_settings, dict):
        raise NodeConfigError(f"{config_file} root must be a mapping")

    settings = flatten_settings(raw_settings)
    home_dir = config_dir.resolve().parent

    return NodeState(
        config_dir=config_dir,
        config_file=config_file,
        data_paths=_resolve_data_paths(settings.get("path.data"), home_dir),
        settings=settings,
    )
