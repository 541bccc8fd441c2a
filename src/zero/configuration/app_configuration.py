"""
Process-wide settings read from ``config/app_config.yml``.

Per-guild settings live in the guild documents; this file only holds what is
the same for every guild: the fallback prefix, owner IDs, the database
location, RealmEye endpoints, and scheduler and prompt timings.
"""

from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict, List
import yaml

from zero.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()

DEFAULT_PREFIX = ";"
DEFAULT_REALMEYE_API_URL = "https://nightfirec.at/realmeye-api/?player="
DEFAULT_NAME_HISTORY_URL = "https://www.realmeye.com/name-history-of-player/{}"
DEFAULT_PRESENCE_TEXT = "my soul dying."


class AppConfig:
    """Cached view of the YAML settings file.

    Missing keys and sections of the wrong type fall back to defaults, so a
    partially written file never stops the bot from starting.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as handle:
                # shared lock: an editor saving the file holds it exclusively
                fcntl.flock(handle.fileno(), fcntl.LOCK_SH)
                try:
                    loaded = yaml.safe_load(handle)
                finally:
                    fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        except FileNotFoundError:
            logger.warning("[CONFIG] %s does not exist, using defaults", self.config_path)
            return {}
        except (OSError, yaml.YAMLError) as error:
            logger.error("[CONFIG] Could not read %s: %s", self.config_path, error)
            return {}
        return loaded if isinstance(loaded, dict) else {}

    def _section(self, key: str) -> Dict[str, Any]:
        value = self._data.get(key, {})
        return value if isinstance(value, dict) else {}

    def reload(self) -> Dict[str, Any]:
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    @property
    def default_prefix(self) -> str:
        """Command prefix used in DMs and for guilds that never set their own."""
        return str(self._data.get("default_prefix") or DEFAULT_PREFIX)

    @property
    def delete_embed_seconds(self) -> float:
        """Lifetime of temporary error/notice embeds, in seconds."""
        return float(self._data.get("delete_embed_seconds", 5))

    @property
    def presence_text(self) -> str:
        return str(self._data.get("presence_text") or DEFAULT_PRESENCE_TEXT)

    @property
    def bot_owner_ids(self) -> List[int]:
        owners = self._data.get("bot_owner_ids") or []
        if not isinstance(owners, list):
            return []
        return [int(owner) for owner in owners]

    @property
    def database_path(self) -> Path:
        """Location of the SQLite database file, relative to the working directory."""
        return Path(self._section("database").get("path", "./data/zero.db")).resolve()

    @property
    def realmeye_api_url(self) -> str:
        """Base URL of the player lookup API; the in-game name is appended to it."""
        return str(self._section("realmeye").get("api_url") or DEFAULT_REALMEYE_API_URL)

    @property
    def name_history_url(self) -> str:
        """Template of the name history page; ``{}`` is replaced by the in-game name."""
        return str(self._section("realmeye").get("name_history_url") or DEFAULT_NAME_HISTORY_URL)

    @property
    def request_timeout_seconds(self) -> float:
        return float(self._section("realmeye").get("timeout_seconds", 15.0))

    @property
    def user_cache_refresh_seconds(self) -> float:
        """Interval of the profile name index refresh. Default is 600 seconds (10 minutes)."""
        return float(self._section("user_cache").get("refresh_seconds", 600.0))

    @property
    def name_prompt_timeout(self) -> float:
        """How long a member has to type their in-game name, in seconds."""
        return float(self._section("verification").get("name_prompt_seconds", 120.0))

    @property
    def verification_timeout(self) -> float:
        """How long a member has to place the code and react, in seconds."""
        return float(self._section("verification").get("verification_seconds", 900.0))


# Shared application-wide configuration instance
app_config = AppConfig(CONFIG_PATH)
