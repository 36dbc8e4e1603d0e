"""
Module ORM Registry (``collision_modules._orm_registry``).

Responsibility
--------------
Ensure every SQLAlchemy model is imported so that ``Base.metadata``
contains its table before tables are created.  ``create_all_tables()`` is
the one entry point callers and ``tests/conftest.py`` use for a complete
schema.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from ``collision_modules`` packages
and from ``collision_kernel`` (allowed: modules -> kernel).  MUST NOT be
imported by ``collision_kernel``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``collision_modules.*.orm`` module.

    Idempotent -- repeated calls are harmless.
    """
    import collision_kernel.services.sequence_service  # noqa: F401
    import collision_modules.procurement.orm  # noqa: F401


def create_all_tables() -> None:
    """Register all ORM models, then create their tables."""
    from collision_kernel.db.engine import create_tables

    import_all_orm_models()
    create_tables()
