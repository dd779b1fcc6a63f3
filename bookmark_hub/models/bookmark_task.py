"""
Bookmark Task Model

One row per URL submission. The table doubles as a durable work queue:

- Submission inserts a PENDING row with next_delivery = now
- The ingestion worker leases rows by pushing next_delivery into the future
  (SELECT ... FOR UPDATE SKIP LOCKED, see services/store/task_queue.py)
- Completion sets DONE, re-queues as PENDING with retries + 1, or sets FAIL

Rows are never deleted; they are the audit trail of every submission.
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Enum, Index, SmallInteger, Text, func, text
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import Mapped, mapped_column

from bookmark_hub.db.base import Base, TimestampMixin


# ================================
# Enums
# ================================

class TaskStatus(str, enum.Enum):
    """
    Lifecycle of a bookmark task.

    Status Flow:
    ------------
    PENDING → DONE                      (processed successfully)
    PENDING → PENDING (retries + 1)     (failed, under the retry ceiling)
    PENDING → FAIL                      (failed, ceiling reached; terminal)

    DONE and FAIL are terminal: the dequeue query only ever looks at PENDING.
    """

    PENDING = "pending"
    DONE = "done"
    FAIL = "fail"

    def __str__(self) -> str:
        """Return the string value of the enum."""
        return self.value


class BookmarkTask(Base, TimestampMixin):
    """
    A submitted URL waiting to become (or having become) a bookmark.

    Table: bookmark_task
    --------------------
    next_delivery is a lease expiry, not a schedule: a task is eligible for
    dequeue when it is PENDING and next_delivery <= now. A worker that crashes
    mid-task simply lets the lease run out and another worker picks the task up
    again (at-least-once delivery).
    """

    __tablename__ = "bookmark_task"

    task_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("uuid_generate_v4()"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
        index=True,
        comment="Owner of the submission",
    )

    url: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="URL exactly as submitted (normalized later by the processor)",
    )

    status: Mapped[TaskStatus] = mapped_column(
        Enum(
            TaskStatus,
            name="task_status",
            values_callable=lambda statuses: [status.value for status in statuses],
        ),
        nullable=False,
        default=TaskStatus.PENDING,
        server_default=TaskStatus.PENDING.value,
        index=True,
    )

    tags: Mapped[Optional[list[str]]] = mapped_column(
        ARRAY(Text),
        nullable=True,
        comment="Tags given at submission, copied onto the bookmark",
    )

    summary: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Summary given at submission, copied onto the bookmark",
    )

    next_delivery: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        comment="Lease expiry; eligible for dequeue once passed",
    )

    retries: Mapped[Optional[int]] = mapped_column(
        SmallInteger,
        nullable=True,
        comment="Failed attempts so far (NULL means none)",
    )

    fail_reason: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Error text of the final attempt once the task is FAIL",
    )

    __table_args__ = (
        # Only pending rows are ever scanned by the dequeue query
        Index(
            "ix_bookmark_task_next_delivery_pending",
            "next_delivery",
            postgresql_where=text("status = 'pending'"),
        ),
    )

    def should_retry(self, max_retries: int) -> bool:
        """True if one more failure still leaves the task under max_retries failures."""
        return (self.retries or 0) + 1 < max_retries

    def __repr__(self) -> str:
        return (
            f"BookmarkTask(task_id={self.task_id}, status={self.status}, "
            f"retries={self.retries}, url='{self.url}')"
        )
