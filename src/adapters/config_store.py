"""Config file storage adapter.

The config file is the single user-editable store for destinations, message
type rules and application settings. JSON is the default format; files ending
in .yaml or .yml are read and written with PyYAML.

Destination helpers operate on the raw mapping so edits keep every other
section of the file untouched.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import yaml

from core.models import PLATFORMS

YAML_SUFFIXES = {".yaml", ".yml"}


class DestinationError(ValueError):
    """Raised when a destination edit cannot be applied."""


def _is_yaml(path: Path) -> bool:
    return path.suffix.lower() in YAML_SUFFIXES


def load_config_file(path: "str | Path") -> dict[str, Any]:
    """Read and parse the config file."""

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    text = path.read_text(encoding="utf-8")
    if _is_yaml(path):
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping at the top level: {path}")
    return data


def save_config_file(path: "str | Path", data: dict[str, Any]) -> None:
    """Write the config back in the format implied by the file suffix."""

    path = Path(path)
    if _is_yaml(path):
        text = yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    else:
        text = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    path.write_text(text, encoding="utf-8")


def _destinations(data: dict[str, Any]) -> dict[str, Any]:
    destinations = data.get("destinations")
    if destinations is None:
        destinations = {}
        data["destinations"] = destinations
    if not isinstance(destinations, dict):
        raise DestinationError("destinations must be a mapping")
    return destinations


def list_destinations(data: dict[str, Any]) -> list[tuple[str, dict[str, Any]]]:
    """Return (key, entry) pairs in file order."""

    return list(_destinations(data).items())


def add_destination(
    data: dict[str, Any],
    key: str,
    transport_id: str,
    platform: str = "telegram",
    topic_id: Optional[int] = None,
    name: Optional[str] = None,
    description: Optional[str] = None,
    priority: int = 0,
) -> dict[str, Any]:
    """Add a new destination entry and return it."""

    destinations = _destinations(data)
    if key in destinations:
        raise DestinationError(f"Destination '{key}' already exists")
    if platform not in PLATFORMS:
        raise DestinationError(f"Platform must be one of {', '.join(sorted(PLATFORMS))}")

    entry: dict[str, Any] = {"id": str(transport_id), "platform": platform}
    if topic_id is not None:
        entry["topic_id"] = int(topic_id)
    entry["name"] = name or key
    if description:
        entry["description"] = description
    entry["priority"] = priority
    destinations[key] = entry
    return entry


def _existing(data: dict[str, Any], key: str) -> dict[str, Any]:
    entry = _destinations(data).get(key)
    if entry is None:
        raise DestinationError(f"Destination '{key}' not found")
    return entry


def update_destination_id(data: dict[str, Any], key: str, transport_id: str) -> None:
    _existing(data, key)["id"] = str(transport_id)


def remove_destination(data: dict[str, Any], key: str) -> dict[str, Any]:
    _existing(data, key)
    return _destinations(data).pop(key)


def get_destination_id(data: dict[str, Any], key: str) -> str:
    return str(_existing(data, key).get("id", ""))
