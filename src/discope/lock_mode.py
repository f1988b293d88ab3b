from __future__ import annotations

from enum import Enum


class LockMode(Enum):
    """Select locking behavior for scope instance caches.

    Pass a value as ``lock_mode`` to ``build_service_provider``. The mode
    applies to every scope created by the resulting provider.
    """

    THREAD = "thread"
    """Guard get-or-create with per-key ``threading.RLock`` so each cached
    service is constructed exactly once per scope."""

    NONE = "none"
    """Disable locking around cache reads/writes for single-threaded callers."""
