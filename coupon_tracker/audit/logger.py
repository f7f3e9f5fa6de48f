"""
Audit Logger

DESIGN DECISION: Every state change in the system is logged.
This provides:
1. Complete traceability
2. Debugging capability for persistence and sync failures
3. A change feed: subscribers (the UI) are told about every event

The audit logger:
- Is synchronous, like the rest of the core (one control path)
- Gracefully handles failures (a broken listener never breaks a mutation)
- Never raises to the caller
"""

from typing import Callable, Optional

import structlog

from coupon_tracker.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


AuditListener = Callable[[AuditEvent], None]


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Every subscribed listener (for change notification)
    """

    def __init__(self):
        self._logger = structlog.get_logger("coupon_tracker.audit")
        self._listeners: list[AuditListener] = []

    def subscribe(self, listener: AuditListener) -> Callable[[], None]:
        """
        Register a listener for every future event.

        Returns a callable that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def log(self, event: AuditEvent) -> None:
        """
        Log an audit event and notify listeners.
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_listener_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )

    def log_upsell(self, action: str, reason: Optional[str]) -> None:
        """Log that a gated action needs the upgrade."""
        self.log(AuditEventBuilder.upsell_required(action=action, reason=reason))

    def log_validation_failed(self, subject: str, issues: list[dict]) -> None:
        """Log a validation refusal."""
        self.log(AuditEventBuilder.validation_failed(subject=subject, issues=issues))

    def log_persistence_failed(self, key: str, tier: str, error_message: str) -> None:
        """Log a storage write that was swallowed at the persistence boundary."""
        self.log(AuditEventBuilder.persistence_failed(
            key=key,
            tier=tier,
            error_message=error_message,
        ))

    def log_snapshot_discarded(self, key: str, error_message: str) -> None:
        """Log a stored value that could not be decoded."""
        self.log(AuditEventBuilder.snapshot_discarded(key=key, error_message=error_message))
