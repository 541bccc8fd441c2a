"""
Per-guild configuration document.

A guild document is persisted as one JSON blob in the ``guilds`` table. It maps
the named roles and channels the bot cares about to Discord IDs, holds the
verification requirements of every section, and carries the moderation state
(blacklist, mutes, suspensions) and the quota log of the guild.

The main section is not stored in ``sections``: it is derived from the
top-level roles/channels so that the common single-section setup needs no
section configuration at all.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

MAIN_SECTION_NAME = "Main"

# Ascending order of authority; a role satisfies every rank below it
STAFF_HIERARCHY: List[str] = [
    "support",
    "trial_raid_leader",
    "almost_raid_leader",
    "raid_leader",
    "head_raid_leader",
    "officer",
    "moderator",
]


def _opt_int(value: Any) -> Optional[int]:
    if value in (None, "", 0):
        return None
    return int(value)


@dataclass(slots=True)
class KeyTier:
    role: Optional[int] = None
    minimum: int = 0


@dataclass(slots=True)
class RoleConfig:
    """Discord role IDs for every named role of the guild."""

    team: Optional[int] = None
    moderator: Optional[int] = None
    head_raid_leader: Optional[int] = None
    officer: Optional[int] = None
    raid_leader: Optional[int] = None
    almost_raid_leader: Optional[int] = None
    trial_raid_leader: Optional[int] = None
    support: Optional[int] = None
    pardoned_raid_leader: Optional[int] = None
    raider: Optional[int] = None
    suspended: Optional[int] = None
    muted: Optional[int] = None
    talking_roles: List[int] = field(default_factory=list)
    key_tiers: List[KeyTier] = field(default_factory=list)

    def staff_role_ids(self) -> List[int]:
        """Return every configured staff role ID (team role excluded)."""
        ids = [getattr(self, name) for name in STAFF_HIERARCHY]
        ids.append(self.pardoned_raid_leader)
        return [role_id for role_id in ids if role_id]

    def all_role_ids(self) -> List[int]:
        ids: List[Optional[int]] = [getattr(self, name) for name in ROLE_FIELDS]
        ids.extend(self.talking_roles)
        ids.extend(tier.role for tier in self.key_tiers)
        return [role_id for role_id in ids if role_id]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RoleConfig":
        roles = cls(**{name: _opt_int(data.get(name)) for name in ROLE_FIELDS})
        roles.talking_roles = [int(role_id) for role_id in data.get("talking_roles", [])]
        roles.key_tiers = [
            KeyTier(role=_opt_int(tier.get("role")), minimum=int(tier.get("minimum", 0)))
            for tier in data.get("key_tiers", [])
        ]
        return roles


ROLE_FIELDS: List[str] = [
    "team", "moderator", "head_raid_leader", "officer", "raid_leader",
    "almost_raid_leader", "trial_raid_leader", "support", "pardoned_raid_leader",
    "raider", "suspended", "muted",
]


@dataclass(slots=True)
class LoggingChannels:
    moderation: Optional[int] = None
    suspension: Optional[int] = None
    verification_attempts: Optional[int] = None
    verification_success: Optional[int] = None
    join_leave: Optional[int] = None
    bot_updates: Optional[int] = None
    reaction_logging: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingChannels":
        return cls(**{name: _opt_int(data.get(name)) for name in LOGGING_CHANNEL_FIELDS})


LOGGING_CHANNEL_FIELDS: List[str] = [
    "moderation", "suspension", "verification_attempts", "verification_success",
    "join_leave", "bot_updates", "reaction_logging",
]


@dataclass(slots=True)
class ChannelConfig:
    verification: Optional[int] = None
    manual_verification: Optional[int] = None
    control_panel: Optional[int] = None
    logging: LoggingChannels = field(default_factory=LoggingChannels)

    def all_channel_ids(self) -> List[int]:
        ids = [self.verification, self.manual_verification, self.control_panel]
        ids.extend(getattr(self.logging, name) for name in LOGGING_CHANNEL_FIELDS)
        return [channel_id for channel_id in ids if channel_id]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChannelConfig":
        return cls(
            verification=_opt_int(data.get("verification")),
            manual_verification=_opt_int(data.get("manual_verification")),
            control_panel=_opt_int(data.get("control_panel")),
            logging=LoggingChannels.from_dict(data.get("logging", {})),
        )


@dataclass(slots=True)
class Threshold:
    required: bool = False
    minimum: int = 0


@dataclass(slots=True)
class MaxedStatsRequirement:
    required: bool = False
    # stats[i] is the number of characters needed with exactly i/8 maxed stats
    stats: List[int] = field(default_factory=lambda: [0] * 9)


@dataclass(slots=True)
class VerificationRequirements:
    alive_fame: Threshold = field(default_factory=Threshold)
    stars: Threshold = field(default_factory=Threshold)
    maxed_stats: MaxedStatsRequirement = field(default_factory=MaxedStatsRequirement)

    def any_required(self) -> bool:
        return self.alive_fame.required or self.stars.required or self.maxed_stats.required

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VerificationRequirements":
        fame = data.get("alive_fame", {})
        stars = data.get("stars", {})
        maxed = data.get("maxed_stats", {})
        stats = [int(amount) for amount in maxed.get("stats", [])][:9]
        stats.extend([0] * (9 - len(stats)))
        return cls(
            alive_fame=Threshold(bool(fame.get("required", False)), int(fame.get("minimum", 0))),
            stars=Threshold(bool(stars.get("required", False)), int(stars.get("minimum", 0))),
            maxed_stats=MaxedStatsRequirement(bool(maxed.get("required", False)), stats),
        )


@dataclass(slots=True)
class ManualVerificationEntry:
    """A member waiting for staff to accept or deny their verification."""

    user_id: int
    in_game_name: str
    rank: int
    alive_fame: int
    name_history: List[Dict[str, str]]
    message_id: int
    channel_id: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ManualVerificationEntry":
        return cls(
            user_id=int(data["user_id"]),
            in_game_name=str(data.get("in_game_name", "")),
            rank=int(data.get("rank", 0)),
            alive_fame=int(data.get("alive_fame", 0)),
            name_history=list(data.get("name_history", [])),
            message_id=int(data.get("message_id", 0)),
            channel_id=int(data.get("channel_id", 0)),
        )


@dataclass(slots=True)
class Section:
    """A verification scope with its own role, channels and requirements."""

    name: str
    is_main: bool = False
    verified_role: Optional[int] = None
    verification_channel: Optional[int] = None
    manual_verification_channel: Optional[int] = None
    verification_attempts_channel: Optional[int] = None
    verification_success_channel: Optional[int] = None
    requirements: VerificationRequirements = field(default_factory=VerificationRequirements)
    show_requirements: bool = True
    manual_verification_entries: List[ManualVerificationEntry] = field(default_factory=list)
    # Message in the verification channel members react to
    control_message_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Section":
        return cls(
            name=str(data.get("name", "")),
            is_main=False,
            verified_role=_opt_int(data.get("verified_role")),
            verification_channel=_opt_int(data.get("verification_channel")),
            manual_verification_channel=_opt_int(data.get("manual_verification_channel")),
            verification_attempts_channel=_opt_int(data.get("verification_attempts_channel")),
            verification_success_channel=_opt_int(data.get("verification_success_channel")),
            requirements=VerificationRequirements.from_dict(data.get("requirements", {})),
            show_requirements=bool(data.get("show_requirements", True)),
            manual_verification_entries=[
                ManualVerificationEntry.from_dict(entry)
                for entry in data.get("manual_verification_entries", [])
            ],
            control_message_id=_opt_int(data.get("control_message_id")),
        )


@dataclass(slots=True)
class RunCounts:
    completed: int = 0
    failed: int = 0
    assists: int = 0

    @property
    def total(self) -> int:
        return self.completed + self.failed + self.assists

    def add(self, other: "RunCounts") -> "RunCounts":
        return RunCounts(
            self.completed + other.completed,
            self.failed + other.failed,
            self.assists + other.assists,
        )

    def __str__(self) -> str:
        return f"{self.completed} / {self.failed} / {self.assists}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any] | None) -> "RunCounts":
        data = data or {}
        return cls(int(data.get("completed", 0)), int(data.get("failed", 0)), int(data.get("assists", 0)))


RUN_CATEGORIES: List[str] = ["general", "endgame", "realm_clearing"]


@dataclass(slots=True)
class QuotaEntry:
    member_id: int
    last_updated: int = 0
    general: RunCounts = field(default_factory=RunCounts)
    endgame: RunCounts = field(default_factory=RunCounts)
    realm_clearing: RunCounts = field(default_factory=RunCounts)

    @property
    def total(self) -> int:
        return self.general.total + self.endgame.total + self.realm_clearing.total

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuotaEntry":
        return cls(
            member_id=int(data["member_id"]),
            last_updated=int(data.get("last_updated", 0)),
            general=RunCounts.from_dict(data.get("general")),
            endgame=RunCounts.from_dict(data.get("endgame")),
            realm_clearing=RunCounts.from_dict(data.get("realm_clearing")),
        )


@dataclass(slots=True)
class QuotaLog:
    last_reset: int = 0
    details: List[QuotaEntry] = field(default_factory=list)

    def entry_for(self, member_id: int) -> Optional[QuotaEntry]:
        return next((entry for entry in self.details if entry.member_id == member_id), None)


@dataclass(slots=True)
class GuildProperties:
    successful_verification_message: str = ""
    show_requirements: bool = True
    main_requirements: VerificationRequirements = field(default_factory=VerificationRequirements)
    manual_verification_entries: List[ManualVerificationEntry] = field(default_factory=list)
    quotas: QuotaLog = field(default_factory=QuotaLog)
    control_message_id: Optional[int] = None


@dataclass(slots=True)
class BlacklistEntry:
    in_game_name: str
    reason: str
    moderator: int = 0
    issued_at: int = 0


@dataclass(slots=True)
class PunishmentEntry:
    """An active mute or suspension."""

    user_id: int
    moderator_id: int
    reason: str
    issued_at: int
    expires_at: Optional[int] = None
    # Section roles taken away by a suspension, restored when it ends
    roles: List[int] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PunishmentEntry":
        expires = data.get("expires_at")
        return cls(
            user_id=int(data["user_id"]),
            moderator_id=int(data.get("moderator_id", 0)),
            reason=str(data.get("reason", "")),
            issued_at=int(data.get("issued_at", 0)),
            expires_at=int(expires) if expires is not None else None,
            roles=[int(role_id) for role_id in data.get("roles", [])],
        )


@dataclass(slots=True)
class ModerationState:
    blacklisted_users: List[BlacklistEntry] = field(default_factory=list)
    blacklisted_modmail_users: List[int] = field(default_factory=list)
    muted_users: List[PunishmentEntry] = field(default_factory=list)
    suspended_users: List[PunishmentEntry] = field(default_factory=list)

    def is_blacklisted(self, name: str) -> Optional[BlacklistEntry]:
        lowered = name.lower()
        return next((entry for entry in self.blacklisted_users if entry.in_game_name == lowered), None)


@dataclass(slots=True)
class GuildDocument:
    """Everything the bot knows about one Discord server."""

    guild_id: int
    prefix: str
    roles: RoleConfig = field(default_factory=RoleConfig)
    channels: ChannelConfig = field(default_factory=ChannelConfig)
    properties: GuildProperties = field(default_factory=GuildProperties)
    sections: List[Section] = field(default_factory=list)
    moderation: ModerationState = field(default_factory=ModerationState)

    def main_section(self) -> Section:
        """Build the main section view over the top-level configuration.

        The returned section shares its requirements and manual verification
        entries with this document, so mutating them mutates the document.
        """
        logging = self.channels.logging
        return Section(
            name=MAIN_SECTION_NAME,
            is_main=True,
            verified_role=self.roles.raider,
            verification_channel=self.channels.verification,
            manual_verification_channel=self.channels.manual_verification,
            verification_attempts_channel=logging.verification_attempts,
            verification_success_channel=logging.verification_success,
            requirements=self.properties.main_requirements,
            show_requirements=self.properties.show_requirements,
            manual_verification_entries=self.properties.manual_verification_entries,
            control_message_id=self.properties.control_message_id,
        )

    def all_sections(self) -> List[Section]:
        return [self.main_section(), *self.sections]

    def find_section(self, name: str) -> Optional[Section]:
        lowered = name.lower()
        return next((section for section in self.all_sections() if section.name.lower() == lowered), None)

    def section_by_control_message(self, message_id: int) -> Optional[Section]:
        return next(
            (section for section in self.all_sections() if section.control_message_id == message_id),
            None,
        )

    def set_control_message(self, section_name: str, message_id: Optional[int]) -> None:
        if section_name.lower() == MAIN_SECTION_NAME.lower():
            self.properties.control_message_id = message_id
            return
        section = self.find_section(section_name)
        if section is not None:
            section.control_message_id = message_id

    def set_show_requirements(self, section_name: str, show: bool) -> None:
        if section_name.lower() == MAIN_SECTION_NAME.lower():
            self.properties.show_requirements = show
            return
        section = self.find_section(section_name)
        if section is not None:
            section.show_requirements = show

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def new(cls, guild_id: int, prefix: str) -> "GuildDocument":
        return cls(guild_id=guild_id, prefix=prefix)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GuildDocument":
        props = data.get("properties", {})
        quotas = props.get("quotas", {})
        moderation = data.get("moderation", {})
        return cls(
            guild_id=int(data["guild_id"]),
            prefix=str(data.get("prefix", ";")),
            roles=RoleConfig.from_dict(data.get("roles", {})),
            channels=ChannelConfig.from_dict(data.get("channels", {})),
            properties=GuildProperties(
                successful_verification_message=str(props.get("successful_verification_message", "")),
                show_requirements=bool(props.get("show_requirements", True)),
                main_requirements=VerificationRequirements.from_dict(props.get("main_requirements", {})),
                manual_verification_entries=[
                    ManualVerificationEntry.from_dict(entry)
                    for entry in props.get("manual_verification_entries", [])
                ],
                quotas=QuotaLog(
                    last_reset=int(quotas.get("last_reset", 0)),
                    details=[QuotaEntry.from_dict(entry) for entry in quotas.get("details", [])],
                ),
                control_message_id=_opt_int(props.get("control_message_id")),
            ),
            sections=[Section.from_dict(section) for section in data.get("sections", [])],
            moderation=ModerationState(
                blacklisted_users=[
                    BlacklistEntry(
                        in_game_name=str(entry["in_game_name"]).lower(),
                        reason=str(entry.get("reason", "")),
                        moderator=int(entry.get("moderator", 0)),
                        issued_at=int(entry.get("issued_at", 0)),
                    )
                    for entry in moderation.get("blacklisted_users", [])
                ],
                blacklisted_modmail_users=[int(uid) for uid in moderation.get("blacklisted_modmail_users", [])],
                muted_users=[PunishmentEntry.from_dict(entry) for entry in moderation.get("muted_users", [])],
                suspended_users=[PunishmentEntry.from_dict(entry) for entry in moderation.get("suspended_users", [])],
            ),
        )
