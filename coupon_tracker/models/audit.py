"""
Audit Models for Coupon Tracker

Every state change in the system produces an audit event.
This provides:
1. Complete traceability of all operations
2. Debugging information when persistence or sync goes wrong
3. A single change feed that the UI subscribes to

DESIGN DECISION: Audit events are immutable. Listeners receive them,
they never edit them.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from coupon_tracker.models.coupon import utc_now


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Coupons
    COUPON_ADDED = "coupon_added"
    COUPON_UPDATED = "coupon_updated"
    COUPON_MOVED = "coupon_moved"
    COUPONS_REORDERED = "coupons_reordered"
    BALANCE_USED = "balance_used"
    COUPON_DELETED = "coupon_deleted"
    COUPON_RESTORED = "coupon_restored"
    COUPON_PURGED = "coupon_purged"

    # Lists
    LIST_CREATED = "list_created"
    LIST_UPDATED = "list_updated"
    LIST_DELETED = "list_deleted"
    LISTS_REORDERED = "lists_reordered"
    LIST_SELECTED = "list_selected"
    DEFAULT_LISTS_SEEDED = "default_lists_seeded"

    # Vocabularies and preferences
    VOCABULARY_CHANGED = "vocabulary_changed"
    DEFAULT_CURRENCY_CHANGED = "default_currency_changed"

    # Refusals
    VALIDATION_FAILED = "validation_failed"
    UPSELL_REQUIRED = "upsell_required"

    # Persistence and sync
    PERSISTENCE_FAILED = "persistence_failed"
    SNAPSHOT_DISCARDED = "snapshot_discarded"
    SYNC_PULLED = "sync_pulled"
    RETENTION_SWEEP = "retention_sweep"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """
    model_config = ConfigDict(frozen=True)

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'coupon', 'list', 'key')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    list_id: Optional[UUID] = Field(
        default=None,
        description="List scope the event happened in"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "list_id": str(self.list_id) if self.list_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.coupon_added(coupon_id, list_id, name)
        event = AuditEventBuilder.upsell_required("select_list", reason)
    """

    @staticmethod
    def coupon_added(coupon_id: UUID, list_id: UUID, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COUPON_ADDED,
            entity_type="coupon",
            entity_id=coupon_id,
            list_id=list_id,
            description=f"Coupon added: {name}",
            details={"name": name},
        )

    @staticmethod
    def coupon_updated(coupon_id: UUID, list_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COUPON_UPDATED,
            entity_type="coupon",
            entity_id=coupon_id,
            list_id=list_id,
            description="Coupon updated",
        )

    @staticmethod
    def coupon_moved(coupon_id: UUID, from_list_id: UUID, to_list_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COUPON_MOVED,
            entity_type="coupon",
            entity_id=coupon_id,
            list_id=to_list_id,
            description="Coupon moved to another list",
            details={"from_list_id": str(from_list_id)},
        )

    @staticmethod
    def coupons_reordered(list_id: UUID, count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COUPONS_REORDERED,
            entity_type="list",
            entity_id=list_id,
            list_id=list_id,
            description=f"Reordered {count} coupons",
            details={"count": count},
        )

    @staticmethod
    def balance_used(
        coupon_id: UUID,
        list_id: UUID,
        amount: Decimal,
        remaining: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_USED,
            entity_type="coupon",
            entity_id=coupon_id,
            list_id=list_id,
            description=f"Used {amount}, {remaining} left",
            details={"amount": str(amount), "remaining": str(remaining)},
        )

    @staticmethod
    def coupon_deleted(coupon_id: UUID, list_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COUPON_DELETED,
            entity_type="coupon",
            entity_id=coupon_id,
            list_id=list_id,
            description="Coupon moved to Recently Deleted",
        )

    @staticmethod
    def coupon_restored(coupon_id: UUID, list_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COUPON_RESTORED,
            entity_type="coupon",
            entity_id=coupon_id,
            list_id=list_id,
            description="Coupon restored from Recently Deleted",
        )

    @staticmethod
    def coupon_purged(coupon_id: UUID, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COUPON_PURGED,
            entity_type="coupon",
            entity_id=coupon_id,
            description=f"Coupon permanently deleted ({reason})",
            details={"reason": reason},
        )

    @staticmethod
    def list_changed(event_type: AuditEventType, list_id: UUID, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type="list",
            entity_id=list_id,
            list_id=list_id,
            description=f"{event_type.value.replace('_', ' ').capitalize()}: {name}",
            details={"name": name},
        )

    @staticmethod
    def vocabulary_changed(key: str, values: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VOCABULARY_CHANGED,
            entity_type="key",
            description=f"Vocabulary {key} changed",
            details={"key": key, "values": values},
        )

    @staticmethod
    def default_currency_changed(list_id: UUID, currency_code: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEFAULT_CURRENCY_CHANGED,
            entity_type="list",
            entity_id=list_id,
            list_id=list_id,
            description=f"Default currency set to {currency_code}",
            details={"currency_code": currency_code},
        )

    @staticmethod
    def validation_failed(subject: str, issues: list[dict]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            description=f"Validation failed for {subject}",
            details={"subject": subject, "issues": issues},
        )

    @staticmethod
    def upsell_required(action: str, reason: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UPSELL_REQUIRED,
            description=f"Upgrade required to {action.replace('_', ' ')}",
            details={"action": action, "reason": reason},
        )

    @staticmethod
    def persistence_failed(key: str, tier: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSISTENCE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="key",
            description=f"Failed to write {key} to {tier} storage",
            details={"key": key, "tier": tier},
            error_message=error_message,
        )

    @staticmethod
    def snapshot_discarded(key: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_DISCARDED,
            severity=AuditSeverity.WARNING,
            entity_type="key",
            description=f"Stored snapshot for {key} is unreadable, treating as empty",
            details={"key": key},
            error_message=error_message,
        )

    @staticmethod
    def sync_pulled(replaced_keys: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_PULLED,
            description=f"Pulled remote replica, {len(replaced_keys)} keys replaced",
            details={"replaced_keys": replaced_keys},
        )

    @staticmethod
    def retention_sweep(purged: int, retention_days: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RETENTION_SWEEP,
            description=f"Purged {purged} coupons older than {retention_days} days",
            details={"purged": purged, "retention_days": retention_days},
        )
