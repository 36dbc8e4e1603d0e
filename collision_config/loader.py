"""
Configuration Loader (``collision_config.loader``).

Responsibility
--------------
Loads the YAML configuration file and parses its ``procurement``,
``ingestion`` and ``batch`` sections into the typed dataclass configs of
each package.  A missing section falls back to that config's defaults.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  Entry points call
``load_config`` once and hand the pieces to the services; no service reads
files or environment variables itself.

Invariants enforced
-------------------
* Parse errors surface as ``ValueError`` / ``TypeError`` from the config
  dataclasses; no silent defaults for present-but-invalid values.
* Unknown top-level sections are rejected.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  data for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys inside a section  -> ``TypeError`` from the dataclass.

Example file::

    procurement:
      tax_rate: "0.0725"
      vendor_cache_enabled: true
    ingestion:
      parse_retries: 2
      min_field_counts: {LI: 5}
    batch:
      concurrency: 4
      pause_on_error: true
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from collision_batch.config import BatchOptions
from collision_ingestion.config import IngestionConfig
from collision_kernel.logging_config import get_logger
from collision_modules.procurement.config import ProcurementConfig

logger = get_logger("config.loader")

KNOWN_SECTIONS = frozenset({"procurement", "ingestion", "batch"})


@dataclass
class CollisionConfig:
    """The three package configs plus the checksum of their source."""

    procurement: ProcurementConfig = field(default_factory=ProcurementConfig)
    ingestion: IngestionConfig = field(default_factory=IngestionConfig)
    batch: BatchOptions = field(default_factory=BatchOptions)
    checksum: str = ""


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Postconditions:
        - Returns a ``dict`` (empty if the YAML is empty).
    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_config(data: dict[str, Any]) -> CollisionConfig:
    """Build a ``CollisionConfig`` from already-loaded YAML data."""
    unknown = set(data) - KNOWN_SECTIONS
    if unknown:
        raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")

    return CollisionConfig(
        procurement=ProcurementConfig.from_dict(data.get("procurement") or {}),
        ingestion=IngestionConfig.from_dict(data.get("ingestion") or {}),
        batch=BatchOptions.from_dict(data.get("batch") or {}),
        checksum=compute_checksum(data),
    )


def load_config(path: str | Path) -> CollisionConfig:
    path = Path(path)
    data = load_yaml_file(path)
    config = parse_config(data)
    logger.info(
        "config_loaded",
        extra={
            "path": str(path),
            "sections": sorted(data),
            "checksum": config.checksum,
        },
    )
    return config
