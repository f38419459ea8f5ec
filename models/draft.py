from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, LargeBinary, String
from sqlalchemy.orm import relationship

from database import Base


def _now() -> datetime:
    return datetime.now(timezone.utc)


class DraftSession(Base):
    __tablename__ = "draft_sessions"

    id = Column(String(64), primary_key=True, index=True)
    kind = Column(String(32), nullable=False, index=True)
    step = Column(Integer, nullable=False, default=1)
    # form -> submitting -> payment -> completed
    stage = Column(String(16), nullable=False, default="form", index=True)
    # ApplicationDraft.model_dump() (snake_case, details nested)
    fields = Column(JSON, nullable=False)
    application_id = Column(Integer, nullable=True)
    payment_id = Column(Integer, nullable=True)
    payment_form = Column(JSON, nullable=True)
    payment_status = Column(String(16), nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now, nullable=False)

    attachments = relationship(
        "DraftAttachment",
        back_populates="draft",
        cascade="all, delete-orphan",
        order_by="DraftAttachment.created_at",
    )


class DraftAttachment(Base):
    __tablename__ = "draft_attachments"

    id = Column(String(64), primary_key=True, index=True)
    draft_id = Column(String(64), ForeignKey("draft_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    # profile_picture | document
    role = Column(String(32), nullable=False)
    filename = Column(String(256), nullable=False)
    content_type = Column(String(128), nullable=False)
    size_bytes = Column(Integer, nullable=False, default=0)
    content = Column(LargeBinary, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)

    draft = relationship("DraftSession", back_populates="attachments")
