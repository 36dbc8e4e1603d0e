"""
collision_ingestion -- Collision estimate import (BMS XML and EMS text).

Decodes and sniffs estimate files, parses them into a format-specific
intermediate tree, validates the tree into one report shape, and maps
valid estimates into the canonical EstimateDocument.

Architecture:
    collision_ingestion/ is a top-level package. It imports from
    collision_kernel and collision_engines only; collision_modules consumes
    its EstimateDocument.
"""
