from group_shield.notifier.audit_channel import AuditChannel, format_user

__all__ = ["AuditChannel", "format_user"]
