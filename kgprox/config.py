"""Load kgprox settings from TOML and the environment.

Settings are resolved in three layers, later layers winning:
  1. Built-in defaults (the field defaults on ``Settings``)
  2. The ``[kgprox]`` table of a TOML file: the path in the KGPROX_CONFIG env
     var if set, otherwise ``kgprox.toml`` in the current working directory
  3. Environment variables KGPROX_DATABASE_URL, KGPROX_PRINCIPAL and
     KGPROX_TAG_CLUSTERS

A missing config file is not an error; an unreadable one is logged and skipped.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field, model_validator

from kgprox.logging import setup_logging

logger = setup_logging()

DEFAULT_DISCONNECTED_DISTANCE = 1000

_ENV_OVERRIDES = {
    "KGPROX_DATABASE_URL": "database_url",
    "KGPROX_PRINCIPAL": "principal",
    "KGPROX_TAG_CLUSTERS": "tag_clusters_path",
}


class Settings(BaseModel):
    """Runtime configuration for rebuilds and queries."""

    model_config = {"frozen": True}

    database_url: str = Field("sqlite:///document_analysis.db", description="SQLAlchemy URL of the fact/alias database")
    principal: str = Field("Jeffrey Epstein", min_length=1, description="Entity all hop distances are measured from")
    disconnected_distance: int = Field(
        DEFAULT_DISCONNECTED_DISTANCE,
        gt=0,
        description="Distance assigned to entities unreachable from the principal",
    )
    default_result_limit: int = Field(500, gt=0, description="Limit used when a query does not give one")
    max_result_limit: int = Field(20000, gt=0, description="Requested limits above this are capped")
    max_scan_rows: int = Field(50000, gt=0, description="Maximum facts considered by one bounded query")
    max_filter_items: int = Field(50, gt=0, description="Maximum entries in any comma-separated filter list")
    max_name_length: int = Field(200, gt=0, description="Longest accepted entity name for actor queries")
    min_timestamp: str = Field("1970-01-01", description="Facts dated before this are never served")
    tag_clusters_path: Path = Field(Path("tag_clusters.json"), description="JSON file with tag clusters")
    skip_self_loops: bool = Field(False, description="Drop facts whose endpoints resolve to the same entity from the graph")
    excluded_name_prefixes: tuple[str, ...] = Field(
        default_factory=tuple,
        description="Raw names starting with these prefixes (case-insensitive) are left out of the graph",
    )
    persist_hop_distances: bool = Field(True, description="Write computed distances to canonical_entities after rebuild")

    @model_validator(mode="after")
    def _limits_are_consistent(self) -> Settings:
        if self.default_result_limit > self.max_result_limit:
            raise ValueError("default_result_limit must not exceed max_result_limit")
        return self


def _default_config_paths() -> list[Path]:
    """Return paths to check for kgprox.toml (first existing wins)."""
    paths: list[Path] = []
    if os.environ.get("KGPROX_CONFIG"):
        paths.append(Path(os.environ["KGPROX_CONFIG"]))
    paths.append(Path.cwd() / "kgprox.toml")
    return paths


def _read_toml_section(paths: list[Path]) -> dict[str, Any]:
    for path in paths:
        if not path.is_file():
            continue
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.warning({"message": "Skipping unreadable config file", "path": str(path), "error": str(e)})
            continue
        section = data.get("kgprox", {})
        if not isinstance(section, dict):
            logger.warning({"message": "[kgprox] is not a table, ignoring", "path": str(path)})
            return {}
        logger.debug({"message": "Loaded config file", "path": str(path), "keys": sorted(section)})
        return dict(section)
    return {}


def load_settings(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> Settings:
    """Build ``Settings`` from defaults, a TOML file and the environment.

    Args:
        config_path: Explicit TOML file; skips the KGPROX_CONFIG / cwd lookup.
        environ: Environment mapping (defaults to ``os.environ``).
        **overrides: Final keyword overrides, e.g. from CLI flags.

    Raises:
        pydantic.ValidationError: If the merged values are invalid.
    """
    env = os.environ if environ is None else environ
    values = _read_toml_section([config_path] if config_path else _default_config_paths())
    for var, key in _ENV_OVERRIDES.items():
        if env.get(var):
            values[key] = env[var]
    values.update({k: v for k, v in overrides.items() if v is not None})
    return Settings.model_validate(values)
