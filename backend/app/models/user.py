"""
User model with secure password storage and a role used for admin gating.
"""

from sqlalchemy import Column, Integer, String, Boolean, CheckConstraint
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin


class UserRole:
    USER = "user"
    ADMIN = "admin"

    ALL = (USER, ADMIN)


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.USER)

    # Relationships
    events = relationship("Event", back_populates="organizer", lazy="raise")
    registrations = relationship("Registration", back_populates="user", lazy="raise")

    __table_args__ = (
        CheckConstraint("role IN ('user', 'admin')", name="check_user_role"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
