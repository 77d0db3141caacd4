"""
Moderation models: content reports and the moderator action log.
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from community.core.database import Base

if TYPE_CHECKING:
    from community.models.forum import Reply, Topic
    from community.models.user import User


class ReportReason(str, PyEnum):
    SPAM = "SPAM"
    HARASSMENT = "HARASSMENT"
    INAPPROPRIATE = "INAPPROPRIATE"
    OFF_TOPIC = "OFF_TOPIC"
    DUPLICATE = "DUPLICATE"
    OTHER = "OTHER"


class ReportStatus(str, PyEnum):
    PENDING = "PENDING"
    REVIEWED = "REVIEWED"
    RESOLVED = "RESOLVED"
    DISMISSED = "DISMISSED"


class ModActionType(str, PyEnum):
    LOCK_TOPIC = "LOCK_TOPIC"
    UNLOCK_TOPIC = "UNLOCK_TOPIC"
    PIN_TOPIC = "PIN_TOPIC"
    UNPIN_TOPIC = "UNPIN_TOPIC"
    MOVE_TOPIC = "MOVE_TOPIC"
    DELETE_TOPIC = "DELETE_TOPIC"
    DELETE_REPLY = "DELETE_REPLY"
    BAN_USER = "BAN_USER"
    UNBAN_USER = "UNBAN_USER"
    WARN_USER = "WARN_USER"
    CHANGE_STATUS = "CHANGE_STATUS"
    RESOLVE_REPORT = "RESOLVE_REPORT"
    DISMISS_REPORT = "DISMISS_REPORT"


class Report(Base):
    """User report against a topic or a reply."""

    __tablename__ = "reports"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    reason: Mapped[ReportReason] = mapped_column(Enum(ReportReason))
    details: Mapped[str | None] = mapped_column(Text)
    status: Mapped[ReportStatus] = mapped_column(
        Enum(ReportStatus), default=ReportStatus.PENDING, index=True
    )

    reporter_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    topic_id: Mapped[int | None] = mapped_column(
        ForeignKey("topics.id", ondelete="SET NULL")
    )
    reply_id: Mapped[int | None] = mapped_column(
        ForeignKey("replies.id", ondelete="SET NULL")
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    reporter: Mapped["User"] = relationship()
    topic: Mapped["Topic | None"] = relationship()
    reply: Mapped["Reply | None"] = relationship()

    def __repr__(self) -> str:
        return f"<Report {self.id} {self.reason.value}>"


class ModAction(Base):
    """Audit log entry for a moderator action."""

    __tablename__ = "mod_actions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    type: Mapped[ModActionType] = mapped_column(Enum(ModActionType))
    reason: Mapped[str | None] = mapped_column(String(500))
    details: Mapped[dict[str, Any] | None] = mapped_column(JSON)

    moderator_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    topic_id: Mapped[int | None] = mapped_column(
        ForeignKey("topics.id", ondelete="SET NULL")
    )
    reply_id: Mapped[int | None] = mapped_column(
        ForeignKey("replies.id", ondelete="SET NULL")
    )
    report_id: Mapped[int | None] = mapped_column(
        ForeignKey("reports.id", ondelete="SET NULL")
    )
    target_user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL")
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    moderator: Mapped["User"] = relationship(foreign_keys=[moderator_id])
    target_user: Mapped["User | None"] = relationship(foreign_keys=[target_user_id])

    def __repr__(self) -> str:
        return f"<ModAction {self.type.value} by {self.moderator_id}>"
