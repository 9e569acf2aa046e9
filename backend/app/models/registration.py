"""
Registration model: one user's relationship to one event.

Key design decisions:
- Unique constraint on (user_id, event_id): a single mutable record (lineage)
  per pair. Cancelling flips its status, registering again re-activates the
  same row instead of appending a new one. This is a state entity, not an
  audit log.
- Rows are never deleted by the normal flow.
- registration_date is stamped on creation and reset on re-activation.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, CheckConstraint, Index
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin


class RegistrationStatus:
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    WAITLISTED = "waitlisted"

    ALL = (CONFIRMED, CANCELLED, WAITLISTED)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Registration(Base, TimestampMixin):
    __tablename__ = "registrations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=RegistrationStatus.CONFIRMED)
    registration_date = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Relationships
    user = relationship("User", back_populates="registrations", lazy="raise")
    event = relationship("Event", back_populates="registrations", lazy="raise")

    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name="uq_user_event_registration"),
        CheckConstraint(
            "status IN ('confirmed', 'cancelled', 'waitlisted')",
            name="check_registration_status",
        ),
        # Confirmed-count per event is the ledger's hot query
        Index("ix_registrations_event_status", "event_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Registration(id={self.id}, user={self.user_id}, "
            f"event={self.event_id}, status={self.status})>"
        )
