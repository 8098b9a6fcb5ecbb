from __future__ import annotations

import uuid
from datetime import datetime, date
from enum import Enum

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from braik.extensions import db, bcrypt

JSONType = JSON().with_variant(JSONB, 'postgresql')


class TimestampedBase(db.Model):
    """Abstract base providing id/created/updated columns."""

    __abstract__ = True

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class OrganizationType(Enum):
    SCHOOL = "school"
    COLLEGE = "college"


class MembershipRole(Enum):
    HEAD_COACH = "HEAD_COACH"
    ASSISTANT_COACH = "ASSISTANT_COACH"
    PLAYER = "PLAYER"
    PARENT = "PARENT"
    SCHOOL_ADMIN = "SCHOOL_ADMIN"
    PLATFORM_OWNER = "PLATFORM_OWNER"


class CoordinatorType(Enum):
    OFFENSIVE_COORDINATOR = "OFFENSIVE_COORDINATOR"
    DEFENSIVE_COORDINATOR = "DEFENSIVE_COORDINATOR"
    SPECIAL_TEAMS_COORDINATOR = "SPECIAL_TEAMS_COORDINATOR"


class Unit(Enum):
    OFFENSE = "OFFENSE"
    DEFENSE = "DEFENSE"
    SPECIAL_TEAMS = "SPECIAL_TEAMS"


class SideOfBall(Enum):
    """Unit naming used by depth charts and playbooks."""
    OFFENSE = "offense"
    DEFENSE = "defense"
    SPECIAL_TEAMS = "special_teams"


class PlayerStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class AccountStatus(Enum):
    ACTIVE = "ACTIVE"
    GRACE = "GRACE"
    READ_ONLY = "READ_ONLY"
    LOCKED = "LOCKED"


class EventType(Enum):
    PRACTICE = "PRACTICE"
    GAME = "GAME"
    MEETING = "MEETING"
    CUSTOM = "CUSTOM"


class EventVisibility(Enum):
    COACHES_ONLY = "COACHES_ONLY"
    TEAM = "TEAM"
    PARENTS_AND_TEAM = "PARENTS_AND_TEAM"


class DocumentVisibility(Enum):
    ALL = "all"
    STAFF = "staff"
    PLAYERS = "players"
    PARENTS = "parents"


class ThreadType(Enum):
    GENERAL = "GENERAL"
    CUSTOM = "CUSTOM"


class AnnouncementAudience(Enum):
    ALL = "all"
    TEAM = "team"
    PARENTS = "parents"


class ProposalStatus(Enum):
    PENDING = "pending"
    EXECUTED = "executed"
    REJECTED = "rejected"


class Organization(TimestampedBase):
    __tablename__ = "organization"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    org_type: Mapped[OrganizationType] = mapped_column(
        SqlEnum(OrganizationType, name="organization_type", native_enum=False),
        nullable=False,
        default=OrganizationType.SCHOOL,
    )

    teams: Mapped[list["Team"]] = relationship(back_populates="organization")

    @property
    def is_high_school(self) -> bool:
        return self.org_type == OrganizationType.SCHOOL


class User(TimestampedBase):
    __tablename__ = "user"

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    name: Mapped[str | None] = mapped_column(String(255))
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False, default='')
    active: Mapped[bool] = mapped_column('is_active', Boolean, nullable=False, default=True)

    memberships: Mapped[list["Membership"]] = relationship(back_populates="user")

    def set_password(self, password: str) -> None:
        self.password_hash = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        try:
            return bcrypt.checkpw(password.encode('utf-8'), self.password_hash.encode('utf-8'))
        except ValueError:
            return False

    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def is_active(self) -> bool:  # Flask-Login compatibility
        return bool(self.active)

    @property
    def is_anonymous(self) -> bool:
        return False

    def get_id(self) -> str:
        return self.id


class Team(TimestampedBase):
    __tablename__ = "team"

    org_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("organization.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    season_start: Mapped[date | None] = mapped_column(Date)
    season_end: Mapped[date | None] = mapped_column(Date)

    # Billing facts
    subscription_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    amount_paid_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    subscription_due_date: Mapped[date | None] = mapped_column(Date)
    ai_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    ai_disabled_by_platform: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    locked_by_platform: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Last synced status, for reporting; the gate always recomputes
    account_status: Mapped[AccountStatus | None] = mapped_column(
        SqlEnum(AccountStatus, name="account_status", native_enum=False),
    )

    organization: Mapped[Organization] = relationship(back_populates="teams")
    memberships: Mapped[list["Membership"]] = relationship(
        back_populates="team",
        cascade="all, delete-orphan",
    )
    seasons: Mapped[list["Season"]] = relationship(
        back_populates="team",
        cascade="all, delete-orphan",
        order_by="Season.year.desc()",
    )
    players: Mapped[list["Player"]] = relationship(
        back_populates="team",
        cascade="all, delete-orphan",
    )


class Season(TimestampedBase):
    __tablename__ = "season"
    __table_args__ = (
        UniqueConstraint("team_id", "year", name="uq_season_team_year"),
    )

    team_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("team.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    first_game_week_date: Mapped[date | None] = mapped_column(Date)

    team: Mapped[Team] = relationship(back_populates="seasons")
    games: Mapped[list["Game"]] = relationship(
        back_populates="season",
        cascade="all, delete-orphan",
    )


class Game(TimestampedBase):
    __tablename__ = "game"

    team_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("team.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    season_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("season.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    opponent: Mapped[str | None] = mapped_column(String(255))
    game_date: Mapped[date] = mapped_column(Date, nullable=False)
    confirmed_by_coach: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    season: Mapped[Season] = relationship(back_populates="games")


class Membership(TimestampedBase):
    __tablename__ = "membership"
    __table_args__ = (
        UniqueConstraint("user_id", "team_id", name="uq_membership_user_team"),
    )

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    team_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("team.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[MembershipRole] = mapped_column(
        SqlEnum(MembershipRole, name="membership_role", native_enum=False),
        nullable=False,
    )
    # Stored blob; decoded into a StaffAssignment at load time
    permissions: Mapped[dict | None] = mapped_column(JSONType)
    position_groups: Mapped[list | None] = mapped_column(JSONType)

    user: Mapped[User] = relationship(back_populates="memberships")
    team: Mapped[Team] = relationship(back_populates="memberships")


class Player(TimestampedBase):
    __tablename__ = "player"

    team_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("team.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="SET NULL"),
        index=True,
    )
    first_name: Mapped[str] = mapped_column(String(120), nullable=False)
    last_name: Mapped[str] = mapped_column(String(120), nullable=False)
    position_group: Mapped[str | None] = mapped_column(String(16))
    jersey_number: Mapped[int | None] = mapped_column(Integer)
    status: Mapped[PlayerStatus] = mapped_column(
        SqlEnum(PlayerStatus, name="player_status", native_enum=False),
        nullable=False,
        default=PlayerStatus.ACTIVE,
    )

    team: Mapped[Team] = relationship(back_populates="players")
    guardian_links: Mapped[list["GuardianPlayer"]] = relationship(
        back_populates="player",
        cascade="all, delete-orphan",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Guardian(TimestampedBase):
    __tablename__ = "guardian"

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    player_links: Mapped[list["GuardianPlayer"]] = relationship(
        back_populates="guardian",
        cascade="all, delete-orphan",
    )


class GuardianPlayer(TimestampedBase):
    __tablename__ = "guardian_player"
    __table_args__ = (
        UniqueConstraint("guardian_id", "player_id", name="uq_guardian_player"),
    )

    guardian_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("guardian.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    player_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("player.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    guardian: Mapped[Guardian] = relationship(back_populates="player_links")
    player: Mapped[Player] = relationship(back_populates="guardian_links")


class ScopedResourceMixin:
    """Scoping columns shared by events, documents and inventory items."""

    created_by: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user.id"),
        nullable=False,
        index=True,
    )
    scoped_unit: Mapped[Unit | None] = mapped_column(
        SqlEnum(Unit, name="scoped_unit", native_enum=False),
    )
    scoped_position_groups: Mapped[list | None] = mapped_column(JSONType)
    scoped_player_ids: Mapped[list | None] = mapped_column(JSONType)
    coordinator_type: Mapped[CoordinatorType | None] = mapped_column(
        SqlEnum(CoordinatorType, name="coordinator_type", native_enum=False),
    )


class Event(ScopedResourceMixin, TimestampedBase):
    __tablename__ = "event"

    team_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("team.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    event_type: Mapped[EventType] = mapped_column(
        SqlEnum(EventType, name="event_type", native_enum=False),
        nullable=False,
        default=EventType.CUSTOM,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    location: Mapped[str | None] = mapped_column(String(255))
    visibility: Mapped[EventVisibility] = mapped_column(
        SqlEnum(EventVisibility, name="event_visibility", native_enum=False),
        nullable=False,
        default=EventVisibility.TEAM,
    )
    locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class CalendarSettings(TimestampedBase):
    __tablename__ = "calendar_settings"

    team_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("team.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    assistants_can_add_meetings: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    assistants_can_add_practices: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class Document(ScopedResourceMixin, TimestampedBase):
    __tablename__ = "document"

    team_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("team.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    file_url: Mapped[str | None] = mapped_column(String(1024))
    category: Mapped[str | None] = mapped_column(String(64))
    visibility: Mapped[DocumentVisibility] = mapped_column(
        SqlEnum(DocumentVisibility, name="document_visibility", native_enum=False),
        nullable=False,
        default=DocumentVisibility.ALL,
    )
    # Documents are never locked; present so the shared authorizer reads one shape
    locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class InventoryItem(ScopedResourceMixin, TimestampedBase):
    __tablename__ = "inventory_item"

    team_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("team.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str | None] = mapped_column(String(64))
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    condition: Mapped[str | None] = mapped_column(String(32))
    notes: Mapped[str | None] = mapped_column(Text)
    assigned_to_player_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("player.id", ondelete="SET NULL"),
        index=True,
    )
    locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    assigned_player: Mapped[Player | None] = relationship()


class DepthChartEntry(TimestampedBase):
    __tablename__ = "depth_chart_entry"
    __table_args__ = (
        UniqueConstraint(
            "team_id", "unit", "position", "string", "special_team_type",
            name="uq_depth_chart_slot",
        ),
    )

    team_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("team.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    unit: Mapped[SideOfBall] = mapped_column(
        SqlEnum(SideOfBall, name="depth_chart_unit", native_enum=False),
        nullable=False,
    )
    position: Mapped[str] = mapped_column(String(16), nullable=False)
    string: Mapped[int] = mapped_column(Integer, nullable=False)
    player_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("player.id", ondelete="CASCADE"),
        nullable=False,
    )
    special_team_type: Mapped[str | None] = mapped_column(String(32))

    player: Mapped[Player] = relationship()


class Play(TimestampedBase):
    __tablename__ = "play"

    team_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("team.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_by: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user.id"),
        nullable=False,
    )
    side: Mapped[SideOfBall] = mapped_column(
        SqlEnum(SideOfBall, name="play_side", native_enum=False),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    formation: Mapped[str | None] = mapped_column(String(255))
    data: Mapped[dict | None] = mapped_column(JSONType)


class MessageThread(TimestampedBase):
    __tablename__ = "message_thread"

    team_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("team.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    subject: Mapped[str | None] = mapped_column(String(255))
    thread_type: Mapped[ThreadType] = mapped_column(
        SqlEnum(ThreadType, name="thread_type", native_enum=False),
        nullable=False,
        default=ThreadType.CUSTOM,
    )
    created_by: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user.id"),
        nullable=False,
    )

    participants: Mapped[list["ThreadParticipant"]] = relationship(
        back_populates="thread",
        cascade="all, delete-orphan",
    )
    messages: Mapped[list["Message"]] = relationship(
        back_populates="thread",
        cascade="all, delete-orphan",
        order_by="Message.created_at",
    )


class ThreadParticipant(TimestampedBase):
    __tablename__ = "thread_participant"
    __table_args__ = (
        UniqueConstraint("thread_id", "user_id", name="uq_thread_participant"),
    )

    thread_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("message_thread.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    read_only: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    thread: Mapped[MessageThread] = relationship(back_populates="participants")


class Message(TimestampedBase):
    __tablename__ = "message"

    thread_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("message_thread.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user.id"),
        nullable=False,
    )

    thread: Mapped[MessageThread] = relationship(back_populates="messages")


class Announcement(TimestampedBase):
    __tablename__ = "announcement"

    team_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("team.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    audience: Mapped[AnnouncementAudience] = mapped_column(
        SqlEnum(AnnouncementAudience, name="announcement_audience", native_enum=False),
        nullable=False,
        default=AnnouncementAudience.ALL,
    )
    created_by: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user.id"),
        nullable=False,
    )


class AIActionProposal(TimestampedBase):
    __tablename__ = "ai_action_proposal"
    __table_args__ = (
        UniqueConstraint("team_id", "idempotency_key", name="uq_proposal_idempotency"),
    )

    team_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("team.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user.id"),
        nullable=False,
    )
    action_type: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[dict | None] = mapped_column(JSONType)
    preview: Mapped[dict | None] = mapped_column(JSONType)
    status: Mapped[ProposalStatus] = mapped_column(
        SqlEnum(ProposalStatus, name="proposal_status", native_enum=False),
        nullable=False,
        default=ProposalStatus.PENDING,
    )
    idempotency_key: Mapped[str | None] = mapped_column(String(128))
    decided_by: Mapped[str | None] = mapped_column(String(36), ForeignKey("user.id"))
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    executed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    result: Mapped[dict | None] = mapped_column(JSONType)
    rejection_reason: Mapped[str | None] = mapped_column(Text)


class AuditLog(TimestampedBase):
    __tablename__ = "audit_log"

    team_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("team.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    actor_user_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="SET NULL"),
        index=True,
    )
    action: Mapped[str] = mapped_column(String(128), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(128), nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(36))
    meta: Mapped[dict | None] = mapped_column(JSONType, default=dict)


class Notification(TimestampedBase):
    __tablename__ = "notification"

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    team_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("team.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    notification_type: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str | None] = mapped_column(Text)
    link_type: Mapped[str | None] = mapped_column(String(64))
    link_id: Mapped[str | None] = mapped_column(String(36))
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


__all__ = [name for name in globals() if name[0].isupper()]
