"""Records returned by the RealmEye player API and name history page."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List


class LookupFailure(Enum):
    """Outcome of a lookup that produced no usable data."""

    PLAYER_NOT_FOUND = "player_not_found"
    REQUEST_FAILED = "request_failed"
    HISTORY_HIDDEN = "history_hidden"


@dataclass(slots=True)
class CharacterEntry:
    character_class: str
    level: int = 0
    fame: int = 0
    stats_maxed: int = 0


@dataclass(slots=True)
class PlayerProfile:
    name: str
    rank: int = 0
    alive_fame: int = 0
    account_fame: int = 0
    guild: str = ""
    guild_rank: str = ""
    first_seen: str = ""
    last_seen: str = ""
    description: List[str] = field(default_factory=lambda: ["", "", ""])
    characters: List[CharacterEntry] = field(default_factory=list)
    characters_hidden: bool = False

    @property
    def profile_url(self) -> str:
        return f"https://www.realmeye.com/player/{self.name}"

    def description_contains(self, text: str) -> bool:
        return any(text in line for line in self.description)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "PlayerProfile":
        """Build a profile from the API's JSON payload."""
        characters = [
            CharacterEntry(
                character_class=str(char.get("class", "")),
                level=int(char.get("level", 0) or 0),
                fame=int(char.get("fame", 0) or 0),
                stats_maxed=int(char.get("stats_maxed", 0) or 0),
            )
            for char in data.get("characters", []) or []
        ]
        return cls(
            name=str(data.get("player", "")),
            rank=int(data.get("rank", 0) or 0),
            alive_fame=int(data.get("fame", 0) or 0),
            account_fame=int(data.get("account_fame", 0) or 0),
            guild=str(data.get("guild", "") or ""),
            guild_rank=str(data.get("guild_rank", "") or ""),
            first_seen=str(data.get("player_first_seen", "") or ""),
            last_seen=str(data.get("player_last_seen", "") or ""),
            description=[str(data.get(key, "") or "") for key in ("desc1", "desc2", "desc3")],
            characters=characters,
            characters_hidden=bool(data.get("characters_hidden", False)),
        )


@dataclass(slots=True)
class NameHistoryEntry:
    name: str
    from_date: str
    # Empty while the name is still in use
    to_date: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "from": self.from_date, "to": self.to_date}

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> "NameHistoryEntry":
        return cls(name=data.get("name", ""), from_date=data.get("from", ""), to_date=data.get("to", ""))
