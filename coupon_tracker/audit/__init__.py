"""Audit logging package."""

from coupon_tracker.audit.logger import AuditListener, AuditLogger

__all__ = ["AuditListener", "AuditLogger"]
