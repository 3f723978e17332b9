"""ORM models for the meetup reservation schema.

The production schema is owned by Alembic (alembic/versions); tests build it
straight from this metadata.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    LargeBinary,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from meetup.db.base import Base, BigIntPK, UTCDateTime

ROLE_ORGANIZER = "organizer"
ROLE_PARTICIPANT = "participant"
ROLE_ADMIN = "admin"

EVENT_ACTIVE = "active"
EVENT_CANCELLED = "cancelled"
EVENT_BLOCKED = "blocked"

REGISTRATION_REGISTERED = "registered"
REGISTRATION_CHECKED_IN = "checked_in"
REGISTRATION_CANCELLED = "cancelled"

# Registrations that still hold a slot of their ticket type.
CURRENT_REGISTRATION_STATUSES = (REGISTRATION_REGISTERED, REGISTRATION_CHECKED_IN)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Identity row. Never hard-deleted; admins toggle ``is_blocked``."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)
    is_blocked: Mapped[bool] = mapped_column(Boolean, default=False, server_default=text("false"))
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow, nullable=False)

    roles: Mapped[list[UserRole]] = relationship(
        "UserRole", back_populates="user", cascade="all, delete-orphan", lazy="selectin"
    )
    organizer_profile: Mapped[OrganizerProfile | None] = relationship(
        "OrganizerProfile", back_populates="user", uselist=False
    )
    participant_profile: Mapped[ParticipantProfile | None] = relationship(
        "ParticipantProfile", back_populates="user", uselist=False
    )

    @property
    def role_names(self) -> list[str]:
        return sorted(r.role for r in self.roles)


class UserRole(Base):
    __tablename__ = "user_roles"
    __table_args__ = (
        CheckConstraint("role IN ('organizer', 'participant', 'admin')", name="ck_user_roles_role"),
    )

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    role: Mapped[str] = mapped_column(String(32), primary_key=True)

    user: Mapped[User] = relationship("User", back_populates="roles")


class OrganizerProfile(Base):
    """Public face of an organizer: display name, description, avatar."""

    __tablename__ = "organizer_profiles"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    avatar_content: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True, deferred=True)
    avatar_content_type: Mapped[str | None] = mapped_column(String(128), nullable=True)

    user: Mapped[User] = relationship("User", back_populates="organizer_profile")


class ParticipantProfile(Base):
    """Contact details used to backfill registrations of a signed-in participant."""

    __tablename__ = "participant_profiles"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    first_name: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    middle_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)

    user: Mapped[User] = relationship("User", back_populates="participant_profile")


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class Category(Base):
    """Archived categories stay linked to old events but are hidden from new ones."""

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False, server_default=text("false"))
    sort_order: Mapped[int] = mapped_column(Integer, default=0, server_default="0")


class EventCategory(Base):
    __tablename__ = "event_categories"

    event_id: Mapped[int] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), primary_key=True)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id"), primary_key=True)


class Event(Base):
    """An organizer's event. Status moves active -> cancelled, or active <-> blocked."""

    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint("status IN ('active', 'cancelled', 'blocked')", name="ck_events_status"),
        Index("ix_events_start_at_id", "start_at", "id"),
        Index("ix_events_created_at_id", "created_at", "id"),
        Index("ix_events_organizer_id", "organizer_id"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    organizer_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    location: Mapped[str | None] = mapped_column(String(512), nullable=True)
    is_online: Mapped[bool] = mapped_column(Boolean, default=False, server_default=text("false"))
    is_public: Mapped[bool] = mapped_column(Boolean, default=True, server_default=text("true"))
    status: Mapped[str] = mapped_column(String(16), default=EVENT_ACTIVE, server_default=EVENT_ACTIVE)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow, nullable=False)

    ticket_types: Mapped[list[TicketType]] = relationship(
        "TicketType", back_populates="event", order_by="TicketType.id"
    )


class TicketType(Base):
    """Admission unit of an event; all capacity accounting happens here.

    ``registered_count`` mirrors the number of non-cancelled registrations and
    is only ever moved by conditional UPDATE statements.
    """

    __tablename__ = "ticket_types"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_ticket_types_price"),
        CheckConstraint("capacity > 0", name="ck_ticket_types_capacity"),
        CheckConstraint(
            "registered_count >= 0 AND registered_count <= capacity",
            name="ck_ticket_types_registered_count",
        ),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    registered_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    event: Mapped[Event] = relationship("Event", back_populates="ticket_types")


class EventImage(Base):
    __tablename__ = "event_images"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    content: Mapped[bytes] = mapped_column(LargeBinary, nullable=False, deferred=True)
    content_type: Mapped[str] = mapped_column(String(128), nullable=False)
    file_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow, nullable=False)


# ---------------------------------------------------------------------------
# Registrations
# ---------------------------------------------------------------------------


class Registration(Base):
    """A participant's claim on one slot of a ticket type."""

    __tablename__ = "registrations"
    __table_args__ = (
        CheckConstraint(
            "status IN ('registered', 'checked_in', 'cancelled')", name="ck_registrations_status"
        ),
        # At most one live registration per (event, email).
        Index(
            "uq_registrations_event_email_active",
            "event_id",
            "email",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
        Index("ix_registrations_ticket_type_id", "ticket_type_id"),
        Index("ix_registrations_user_id", "user_id"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    ticket_type_id: Mapped[int] = mapped_column(ForeignKey("ticket_types.id"), nullable=False)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    first_name: Mapped[str] = mapped_column(String(128), nullable=False)
    last_name: Mapped[str] = mapped_column(String(128), nullable=False)
    middle_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(
        String(16), default=REGISTRATION_REGISTERED, server_default=REGISTRATION_REGISTERED
    )
    checked_in_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow, nullable=False)

    event: Mapped[Event] = relationship("Event")
    ticket_type: Mapped[TicketType] = relationship("TicketType")


class ReminderSent(Base):
    """Dedup ledger for reminder batches. Append-only."""

    __tablename__ = "reminder_sent"
    __table_args__ = (UniqueConstraint("event_id", "reminder_type", name="uq_reminder_sent_event_type"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    reminder_type: Mapped[str] = mapped_column(String(8), nullable=False)
    sent_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow, nullable=False)
