"""ORM model package."""

from reportdesk.models.entities import (
    Comment,
    CompiledReport,
    Deadline,
    DeadlineType,
    Department,
    Notification,
    NotificationType,
    Report,
    ReportStatus,
    ReportType,
    ReportVersion,
    Unit,
    User,
    UserRole,
)

__all__ = [
    "Comment",
    "CompiledReport",
    "Deadline",
    "DeadlineType",
    "Department",
    "Notification",
    "NotificationType",
    "Report",
    "ReportStatus",
    "ReportType",
    "ReportVersion",
    "Unit",
    "User",
    "UserRole",
]
