from .cross_list_link import CrossListLink
from .delist_log import DelistLog
from .reconcile_lock import ReconcileLock

__all__ = ["CrossListLink", "DelistLog", "ReconcileLock"]
