from __future__ import annotations

from .stdlib import LogshipHandler, enable_stdlib_bridge

__all__ = ["LogshipHandler", "enable_stdlib_bridge"]
