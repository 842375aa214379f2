from __future__ import annotations

from enum import Enum


class RoomType(str, Enum):
    """Kinds of chat rooms."""

    WAITING = "Waiting"
    MATCHING = "Matching"
    PRIVATE = "Private"
    PUBLIC = "Public"


class RoomStatus(str, Enum):
    """Room lifecycle states; only ``ACTIVE`` and ``FULL`` are non-terminal."""

    ACTIVE = "Active"
    INACTIVE = "Inactive"
    FULL = "Full"
    CLOSED = "Closed"
    EXPIRED = "Expired"


class GenderFilter(str, Enum):
    """Audience restriction applied to generated rooms."""

    MALE = "Male"
    FEMALE = "Female"
    MIXED = "Mixed"

    @property
    def display_name(self) -> str:
        return {
            GenderFilter.MALE: "Men",
            GenderFilter.FEMALE: "Women",
            GenderFilter.MIXED: "Mixed",
        }[self]


class ParticipantRole(str, Enum):
    """Roles that a participant can have inside a room."""

    OWNER = "Owner"
    MODERATOR = "Moderator"
    MEMBER = "Member"


class ParticipantStatus(str, Enum):
    """Live presence of a participant inside a room."""

    ONLINE = "Online"
    AWAY = "Away"
    OFFLINE = "Offline"
    SPEAKING = "Speaking"


class MessageType(str, Enum):
    TEXT = "Text"
    EMOJI = "Emoji"
    REACTION = "Reaction"
    SYSTEM = "System"
    GIFT = "Gift"
    JOIN = "Join"
    LEAVE = "Leave"


class ReactionType(str, Enum):
    """Reactions that can be attached to a chat message."""

    HEART = "Heart"
    LIKE = "Like"
    LAUGH = "Laugh"
    WOW = "Wow"
    SAD = "Sad"
    ANGRY = "Angry"
    FIRE = "Fire"
    CLAP = "Clap"

    @property
    def emoji(self) -> str:
        return REACTION_EMOJIS[self]


REACTION_EMOJIS: dict[ReactionType, str] = {
    ReactionType.HEART: "❤️",
    ReactionType.LIKE: "\U0001f44d",
    ReactionType.LAUGH: "\U0001f602",
    ReactionType.WOW: "\U0001f62e",
    ReactionType.SAD: "\U0001f622",
    ReactionType.ANGRY: "\U0001f620",
    ReactionType.FIRE: "\U0001f525",
    ReactionType.CLAP: "\U0001f44f",
}


class MatchStatus(str, Enum):
    """Lifecycle states for matches between two users."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
