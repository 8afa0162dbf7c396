"""Enum definitions for application constants."""

from enum import Enum


class TaskPriority(str, Enum):
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


class TaskStatus(str, Enum):
    """
    Task lifecycle.

    open -> completed (requires actor + timestamp)
    open -> cancelled (tasks are never hard-deleted)
    """

    OPEN = "open"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MilestoneStatus(str, Enum):
    """pending -> in_progress -> completed. completed is terminal."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class AuditEventType(str, Enum):
    OFFICE_CREATED = "office_created"
    OFFICE_RENAMED = "office_renamed"
    PATIENTS_MOVED = "patients_moved"
    BACKFILL_COMPLETED = "backfill_completed"
    TASK_ASSIGNED = "task_assigned"
    TASK_COMPLETED = "task_completed"
    TASK_CANCELLED = "task_cancelled"
    MILESTONE_COMPLETED = "milestone_completed"


DEFAULT_TASK_PRIORITY = TaskPriority.NORMAL
