"""
Player profile records.

A profile links one Discord account to a main in-game name plus any number of
alternate names, and carries activity counters per Discord server.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from zero.datatypes.guild_document import RunCounts


@dataclass(slots=True)
class AltName:
    display_name: str
    lowercase: str

    @classmethod
    def of(cls, name: str) -> "AltName":
        return cls(display_name=name, lowercase=name.lower())


@dataclass(slots=True)
class KeyPops:
    server: int
    keys_popped: int = 0


@dataclass(slots=True)
class VoidVials:
    server: int
    popped: int = 0
    stored: int = 0


@dataclass(slots=True)
class RuneCount:
    amount: int = 0
    popped: int = 0

    def add(self, other: "RuneCount") -> "RuneCount":
        return RuneCount(self.amount + other.amount, self.popped + other.popped)


@dataclass(slots=True)
class WcOryx:
    server: int
    wc_incs: RuneCount = field(default_factory=RuneCount)
    sword_rune: RuneCount = field(default_factory=RuneCount)
    helm_rune: RuneCount = field(default_factory=RuneCount)
    shield_rune: RuneCount = field(default_factory=RuneCount)


@dataclass(slots=True)
class CompletedRuns:
    server: int
    general: int = 0
    endgame: int = 0
    realm_clearing: int = 0


@dataclass(slots=True)
class LeaderRuns:
    server: int
    general: RunCounts = field(default_factory=RunCounts)
    endgame: RunCounts = field(default_factory=RunCounts)
    realm_clearing: RunCounts = field(default_factory=RunCounts)


@dataclass(slots=True)
class ModerationRecord:
    server: int
    kind: str
    moderator: int
    reason: str
    issued_at: int
    duration: Optional[int] = None


@dataclass(slots=True)
class UserDocument:
    """A player profile keyed by Discord user ID and main in-game name."""

    discord_user_id: int
    display_name: str
    lowercase_name: str
    other_accounts: List[AltName] = field(default_factory=list)
    last_modified: int = 0
    key_pops: List[KeyPops] = field(default_factory=list)
    void_vials: List[VoidVials] = field(default_factory=list)
    wc_oryx: List[WcOryx] = field(default_factory=list)
    completed_runs: List[CompletedRuns] = field(default_factory=list)
    leader_runs: List[LeaderRuns] = field(default_factory=list)
    moderation_history: List[ModerationRecord] = field(default_factory=list)

    @classmethod
    def new(cls, discord_user_id: int, name: str, last_modified: int = 0) -> "UserDocument":
        return cls(
            discord_user_id=discord_user_id,
            display_name=name,
            lowercase_name=name.lower(),
            last_modified=last_modified,
        )

    def all_names(self) -> List[str]:
        """Main name followed by every alternate name, as displayed."""
        return [self.display_name, *(alt.display_name for alt in self.other_accounts)]

    def has_name(self, name: str) -> bool:
        lowered = name.lower()
        return lowered == self.lowercase_name or any(alt.lowercase == lowered for alt in self.other_accounts)

    def set_main_name(self, name: str) -> None:
        self.display_name = name
        self.lowercase_name = name.lower()

    def alt_index(self, name: str) -> int:
        lowered = name.lower()
        return next((i for i, alt in enumerate(self.other_accounts) if alt.lowercase == lowered), -1)

    def remove_alt(self, name: str) -> bool:
        index = self.alt_index(name)
        if index == -1:
            return False
        self.other_accounts.pop(index)
        return True

    def swap_main(self, alt_name: str) -> bool:
        """Make an alternate the main name; the old main becomes that alternate."""
        index = self.alt_index(alt_name)
        if index == -1:
            return False
        alt = self.other_accounts[index]
        self.other_accounts[index] = AltName.of(self.display_name)
        self.set_main_name(alt.display_name)
        return True

    def leader_runs_for(self, server: int) -> LeaderRuns:
        """Return the leader-run counters of a server, creating them on first use."""
        for entry in self.leader_runs:
            if entry.server == server:
                return entry
        entry = LeaderRuns(server=server)
        self.leader_runs.append(entry)
        return entry

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserDocument":
        def runes(entry: Dict[str, Any], key: str) -> RuneCount:
            value = entry.get(key) or {}
            return RuneCount(int(value.get("amount", 0)), int(value.get("popped", 0)))

        return cls(
            discord_user_id=int(data["discord_user_id"]),
            display_name=str(data["display_name"]),
            lowercase_name=str(data.get("lowercase_name") or data["display_name"]).lower(),
            other_accounts=[
                AltName(display_name=str(alt["display_name"]), lowercase=str(alt["display_name"]).lower())
                for alt in data.get("other_accounts", [])
            ],
            last_modified=int(data.get("last_modified", 0)),
            key_pops=[KeyPops(int(e["server"]), int(e.get("keys_popped", 0))) for e in data.get("key_pops", [])],
            void_vials=[
                VoidVials(int(e["server"]), int(e.get("popped", 0)), int(e.get("stored", 0)))
                for e in data.get("void_vials", [])
            ],
            wc_oryx=[
                WcOryx(
                    server=int(e["server"]),
                    wc_incs=runes(e, "wc_incs"),
                    sword_rune=runes(e, "sword_rune"),
                    helm_rune=runes(e, "helm_rune"),
                    shield_rune=runes(e, "shield_rune"),
                )
                for e in data.get("wc_oryx", [])
            ],
            completed_runs=[
                CompletedRuns(
                    int(e["server"]), int(e.get("general", 0)), int(e.get("endgame", 0)), int(e.get("realm_clearing", 0))
                )
                for e in data.get("completed_runs", [])
            ],
            leader_runs=[
                LeaderRuns(
                    server=int(e["server"]),
                    general=RunCounts.from_dict(e.get("general")),
                    endgame=RunCounts.from_dict(e.get("endgame")),
                    realm_clearing=RunCounts.from_dict(e.get("realm_clearing")),
                )
                for e in data.get("leader_runs", [])
            ],
            moderation_history=[
                ModerationRecord(
                    server=int(e["server"]),
                    kind=str(e.get("kind", "")),
                    moderator=int(e.get("moderator", 0)),
                    reason=str(e.get("reason", "")),
                    issued_at=int(e.get("issued_at", 0)),
                    duration=e.get("duration"),
                )
                for e in data.get("moderation_history", [])
            ],
        )
