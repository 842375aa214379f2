from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base
from app.models.enums import MatchStatus


class User(Base):
    """Application user together with identity and profile data."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    full_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    phone_number: Mapped[str | None] = mapped_column(String(20))
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)
    gender: Mapped[str | None] = mapped_column(String(10))
    bio: Mapped[str | None] = mapped_column(String(500))
    profile_image_url: Mapped[str | None] = mapped_column(String(500))
    city: Mapped[str | None] = mapped_column(String(100))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_email_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    interest_links: Mapped[list["UserInterest"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    sent_matches: Mapped[list["Match"]] = relationship(
        back_populates="sender", foreign_keys="Match.sender_id", cascade="all, delete-orphan"
    )
    received_matches: Mapped[list["Match"]] = relationship(
        back_populates="receiver", foreign_keys="Match.receiver_id", cascade="all, delete-orphan"
    )

    @property
    def interest_ids(self) -> list[int]:
        return [link.interest_id for link in self.interest_links]

    @property
    def interest_names(self) -> list[str]:
        return [link.interest.name for link in self.interest_links if link.interest is not None]


class Interest(Base):
    """Catalogue entry users can attach to their profile."""

    __tablename__ = "interests"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(String(200))
    category: Mapped[str | None] = mapped_column(String(50))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    user_links: Mapped[list["UserInterest"]] = relationship(
        back_populates="interest", cascade="all, delete-orphan"
    )


class UserInterest(Base):
    """Association between a user and one of their interests."""

    __tablename__ = "user_interests"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    interest_id: Mapped[int] = mapped_column(
        ForeignKey("interests.id", ondelete="CASCADE"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    user: Mapped[User] = relationship(back_populates="interest_links")
    interest: Mapped[Interest] = relationship(back_populates="user_links")


class Match(Base):
    """Match request between two users.

    ``pair_key`` holds the unordered pair of participant ids so that only one
    match can exist per pair regardless of who sent it.
    """

    __tablename__ = "matches"
    __table_args__ = (Index("ix_matches_receiver_status", "receiver_id", "status"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    sender_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    receiver_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    pair_key: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    status: Mapped[MatchStatus] = mapped_column(
        SAEnum(
            MatchStatus,
            name="match_status",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        default=MatchStatus.PENDING,
        nullable=False,
    )
    message: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    sender: Mapped[User] = relationship(back_populates="sent_matches", foreign_keys=[sender_id])
    receiver: Mapped[User] = relationship(
        back_populates="received_matches", foreign_keys=[receiver_id]
    )

    @staticmethod
    def build_pair_key(first_user_id: int, second_user_id: int) -> str:
        low, high = sorted((int(first_user_id), int(second_user_id)))
        return f"{low}:{high}"
