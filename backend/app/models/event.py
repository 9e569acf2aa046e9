"""
Event model with a seat total and an optimistic-concurrency version.

Key design decisions:
- No stored seat counter. Available seats are always derived as
  total_seats - count(confirmed registrations) by the capacity ledger.
- `version` is bumped by every seat-affecting write (registration state
  changes, capacity updates). Writers commit through a compare-and-swap on it,
  so a registration decided against a stale confirmed count never commits.
- Index on `date` for range queries and the default listing order.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin


class EventStatus:
    SCHEDULED = "scheduled"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    ALL = (SCHEDULED, ONGOING, COMPLETED, CANCELLED)


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(String(1000), nullable=True)
    date = Column(DateTime(timezone=True), nullable=False)
    location = Column(String(255), nullable=True)
    image_url = Column(String(500), nullable=True)
    is_featured = Column(Boolean, nullable=False, default=False)
    total_seats = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=EventStatus.SCHEDULED)
    organizer_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    # Relationships
    organizer = relationship("User", back_populates="events", lazy="raise")
    # Deletion is refused while registrations exist, so none are loaded for it
    registrations = relationship("Registration", back_populates="event", lazy="raise", passive_deletes=True)

    __table_args__ = (
        CheckConstraint("total_seats > 0", name="check_total_seats_positive"),
        CheckConstraint(
            "status IN ('scheduled', 'ongoing', 'completed', 'cancelled')",
            name="check_event_status",
        ),
        Index("ix_events_date", "date"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title}, seats={self.total_seats}, v={self.version})>"
