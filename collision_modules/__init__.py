"""
Collision Modules.

Thin orchestration layers over the collision kernel and engines.  Each
module contains:
- Domain models (the nouns)
- ORM models (persistence)
- Workflows (state machines)
- Configuration schemas (policy and settings)
- A service facade that owns the transaction boundary

Modules:
- Procurement: vendors, part lines, purchase orders, receiving, returns
"""

from collision_modules import procurement

__all__ = ["procurement"]
