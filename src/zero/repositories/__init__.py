"""SQL access for guild documents and player profiles."""

from zero.repositories.guild_repo import GuildRepository
from zero.repositories.user_repo import UserRepository, UserRow

__all__ = ["GuildRepository", "UserRepository", "UserRow"]
