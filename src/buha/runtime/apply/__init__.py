# src/buha/runtime/apply/__init__.py
"""Domain-specific apply modules.

These modules implement deterministic ledger state transitions for subsets
of tx types. Each exposes `apply_<domain>(state, env, *, now)` returning a
receipt dict, or None when the tx type belongs to another domain.

NOTE: Keep this package import-safe (no imports of buha.runtime.domain_apply).
"""

from __future__ import annotations

__all__ = [
    "mint",
    "stake",
    "token",
    "upgrade",
]
