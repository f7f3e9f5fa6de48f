"""
Sync Reconciler

Adopts state pushed by other devices through the remote replica.

DESIGN DECISION: Remote wins on difference.
Local writes are already mirrored by the persistence gateway. A pull
reads each key from the replica and, when the replica holds a value that
differs from ours, replaces ours with it. Nothing is written back, so a
pull never fights another device's pull.

A key the replica does not have is left alone: an empty or unreachable
replica never wipes local data.

Pulls are idempotent. Pulling twice in a row replaces nothing the
second time.
"""

from datetime import datetime
from typing import Iterable, Optional

from coupon_tracker.audit import AuditLogger
from coupon_tracker.models.audit import AuditEventBuilder
from coupon_tracker.services.records import RecordStore
from coupon_tracker.services.storage.persistence import PersistenceGateway, StorageKeys


class SyncReconciler:
    """
    Pull-and-replace against the replica, plus the retention sweep that
    runs whenever the app loads or comes to the foreground.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        records: RecordStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._gateway = gateway
        self._records = records
        self._audit_logger = audit_logger or AuditLogger()

    def pull(self, keys: Optional[Iterable[str]] = None) -> list[str]:
        """
        Replace local values that differ from the replica.

        Args:
            keys: Keys to reconcile. Defaults to every tracked key known
                  locally or remotely.

        Returns:
            The keys whose value was replaced
        """
        if not self._gateway.has_remote:
            return []

        if keys is None:
            candidates = self._gateway.tracked_keys()
        else:
            candidates = [key for key in keys if StorageKeys.is_tracked(key)]

        replaced = []
        for key in candidates:
            remote = self._gateway.read_remote(key)
            if remote is None:
                continue
            if remote != self._gateway.read(key):
                self._gateway.replace_from_remote(key, remote)
                replaced.append(key)

        if replaced:
            self._audit_logger.log(AuditEventBuilder.sync_pulled(replaced))
        return replaced

    def on_remote_change(self, changed_keys: Optional[Iterable[str]] = None) -> list[str]:
        """The replica reported a change (optionally naming the keys)."""
        return self.pull(changed_keys)

    def on_foreground(self, now: Optional[datetime] = None) -> list[str]:
        """The app came back to the foreground: pull, then sweep."""
        replaced = self.pull()
        self.sweep(now)
        return replaced

    def on_load(self, now: Optional[datetime] = None) -> int:
        """The app started: sweep expired deletions."""
        return self.sweep(now)

    def sweep(self, now: Optional[datetime] = None) -> int:
        """
        Purge Recently Deleted coupons past the retention window.

        The purge goes through the normal write path, so it reaches
        memory, the local tier and the replica.
        """
        purged = self._records.purge_expired(now)
        if purged:
            self._audit_logger.log(AuditEventBuilder.retention_sweep(
                purged=purged,
                retention_days=self._records.retention_days,
            ))
        return purged
