"""
Collision Kernel

Shared infrastructure for estimate import and parts procurement:
- Typed exception hierarchy
- Structured JSON logging
- SQLAlchemy declarative base and engine/session management
- Locked-counter sequence allocation
- Fire-and-forget notification sink
"""

__version__ = "0.1.0"
