"""Kernel ORM models shared by every module."""

from gls_kernel.models.audit_event import AuditAction, AuditEvent

__all__ = ["AuditAction", "AuditEvent"]
