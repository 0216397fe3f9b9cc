"""
SQLAlchemy ORM models for the StudyBuddy database.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    ForeignKey,
    Float,
    Enum as SQLEnum,
    JSON,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

from app.database import Base


# Enums
class MatchStatus(str, enum.Enum):
    """Lifecycle states of a buddy match."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    ACTIVE = "active"


class StudyStyle(str, enum.Enum):
    """How a learner prefers to take in material."""

    VISUAL = "visual"
    HANDS_ON = "hands-on"
    READING = "reading"
    AUDITORY = "auditory"
    KINESTHETIC = "kinesthetic"


class ExperienceLevel(str, enum.Enum):
    """Ordinal experience scale, lowest first."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


class Availability(str, enum.Enum):
    """When a learner is usually free to study."""

    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    WEEKENDS = "weekends"
    FLEXIBLE = "flexible"


# Models
class User(Base):
    """A learner who can request matches or be matched as a candidate."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)

    # Matching attributes
    study_style = Column(JSON, nullable=True)  # {"learning_type": "visual", ...}
    interest_tags = Column(JSON, nullable=True)  # ["mathematics", "physics"]
    availability = Column(JSON, nullable=True)  # {"time": "evening"}
    experience_level = Column(String(50), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    blind_spots = relationship("BlindSpot", back_populates="user", cascade="all, delete-orphan")


class BlindSpot(Base):
    """A topic a user is weak (or confident) in."""

    __tablename__ = "blind_spots"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    topic = Column(String(255), nullable=False)
    confidence = Column(Float, nullable=False)  # 0-1
    ai_analysis = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    user = relationship("User", back_populates="blind_spots")


class BuddyMatch(Base):
    """A computed match between a requester (user_id1) and a candidate (user_id2)."""

    __tablename__ = "buddy_matches"

    id = Column(Integer, primary_key=True, index=True)
    user_id1 = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id2 = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    compatibility_score = Column(Float, nullable=False)
    common_topics = Column(JSON, nullable=True)
    suggested_activities = Column(JSON, nullable=True)
    status = Column(
        SQLEnum(MatchStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=MatchStatus.PENDING,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
