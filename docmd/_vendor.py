"""
Vendored aliases for third-party containers.
"""

from __future__ import annotations

from frozendict import frozendict

# =========================================================
# Frozen Dict
# =========================================================
FrozenDict = frozendict

__all__ = [
    "FrozenDict",
]
