"""
YAML configuration for the collision procurement system.

    config = load_config("config/collision.yaml")
    service = ProcurementService(session, config=config.procurement)
"""

from collision_config.loader import (
    CollisionConfig,
    compute_checksum,
    load_config,
    load_yaml_file,
    parse_config,
)

__all__ = [
    "CollisionConfig",
    "compute_checksum",
    "load_config",
    "load_yaml_file",
    "parse_config",
]
