"""
Scheduler that lifts timed mutes and suspensions.

Punishments are persisted on the guild document with an absolute expiry in
epoch milliseconds, so they survive restarts: :meth:`PunishmentScheduler.restore`
re-schedules every stored entry on startup and lifts the ones that expired
while the bot was offline.
"""

import asyncio
import datetime
import heapq
import time
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

import discord

from zero.datatypes.guild_document import GuildDocument, PunishmentEntry
from zero.services.guild_service import guild_service
from zero.util.logger import get_logger
from zero.util.message_utils import send_log

logger = get_logger("punishment_scheduler")


class PunishmentKind(Enum):
    MUTE = "mute"
    SUSPENSION = "suspension"

    @property
    def label(self) -> str:
        return "Mute" if self is PunishmentKind.MUTE else "Suspension"


def punishment_entries(document: GuildDocument, kind: PunishmentKind) -> list[PunishmentEntry]:
    moderation = document.moderation
    return moderation.muted_users if kind is PunishmentKind.MUTE else moderation.suspended_users


def punishment_role_id(document: GuildDocument, kind: PunishmentKind) -> Optional[int]:
    return document.roles.muted if kind is PunishmentKind.MUTE else document.roles.suspended


def punishment_log_channel(document: GuildDocument, kind: PunishmentKind) -> Optional[int]:
    logging = document.channels.logging
    return logging.moderation if kind is PunishmentKind.MUTE else logging.suspension


async def lift_punishment(
    guild: discord.Guild,
    user_id: int,
    kind: PunishmentKind,
    reason: str,
    moderator: Optional[discord.abc.User] = None,
) -> Optional[PunishmentEntry]:
    """
    End a mute or suspension.

    Removes the entry from the guild document, takes the punishment role away
    and, for a suspension, gives back the roles saved when it began. Returns
    the removed entry, or None if the member was not punished.
    """
    removed: list[PunishmentEntry] = []

    def remove(document: GuildDocument) -> None:
        entries = punishment_entries(document, kind)
        removed.extend(entry for entry in entries if entry.user_id == user_id)
        entries[:] = [entry for entry in entries if entry.user_id != user_id]

    document = await guild_service.update(guild.id, remove)
    if not removed:
        return None
    entry = removed[0]

    member = guild.get_member(user_id)
    if member is not None:
        role_id = punishment_role_id(document, kind)
        role = guild.get_role(role_id) if role_id else None
        try:
            if role is not None and role in member.roles:
                await member.remove_roles(role, reason=reason)
            if kind is PunishmentKind.SUSPENSION:
                restored = [r for r in (guild.get_role(rid) for rid in entry.roles) if r is not None]
                if restored:
                    await member.add_roles(*restored, reason=reason)
        except discord.HTTPException as exc:
            logger.warning("[PUNISHMENT SCHEDULER] Could not update roles of %s in %s: %s", user_id, guild.name, exc)

    embed = discord.Embed(
        title=f"🔈 {kind.label} Ended",
        description=f"<@{user_id}> (`{user_id}`) is no longer under a {kind.value}.\n**Reason:** {reason}",
        color=discord.Color.green(),
        timestamp=datetime.datetime.now(datetime.timezone.utc),
    )
    if moderator is not None:
        embed.add_field(name="Moderator", value=f"{moderator.mention} (`{moderator.id}`)")
    await send_log(guild, punishment_log_channel(document, kind), embed=embed)
    logger.info("[PUNISHMENT SCHEDULER] %s of %s in %s lifted: %s", kind.label, user_id, guild.name, reason)
    return entry


@dataclass
class PunishmentJob:
    guild: discord.Guild
    user_id: int
    kind: PunishmentKind
    reason: str = "Punishment duration expired."

    @property
    def key(self) -> Tuple[int, int, str]:
        return self.guild.id, self.user_id, self.kind.value


class PunishmentScheduler:
    """
    Min-heap of pending punishment expiries processed by one background task.

    Re-scheduling a member replaces their previous job; cancelled jobs stay
    in the heap and are skipped when they reach the top.
    """

    def __init__(self) -> None:
        self.heap: list[tuple[float, int, PunishmentJob]] = []
        self.pending_keys: Dict[Tuple[int, int, str], int] = {}
        self.cancelled_ids: set[int] = set()
        self.counter: int = 0
        self.runner_task: asyncio.Task[None] | None = None
        self.condition: asyncio.Condition = asyncio.Condition()

    @property
    def pending_count(self) -> int:
        return len(self.pending_keys)

    def ensure_runner(self) -> None:
        if self.runner_task is None or self.runner_task.done():
            self.runner_task = asyncio.get_running_loop().create_task(self.run(), name="zero-punishment-scheduler")

    async def schedule(self, guild: discord.Guild, user_id: int, kind: PunishmentKind, expires_at: int) -> None:
        """Lift the punishment at ``expires_at`` (epoch ms), or now if that has passed."""
        job = PunishmentJob(guild=guild, user_id=user_id, kind=kind)
        delay = (expires_at - time.time() * 1000) / 1000

        if delay <= 0:
            await self.cancel(guild.id, user_id, kind)
            await self.execute(job)
            return

        loop = asyncio.get_running_loop()
        async with self.condition:
            self.ensure_runner()
            if job.key in self.pending_keys:
                self.cancelled_ids.add(self.pending_keys[job.key])

            self.counter += 1
            heapq.heappush(self.heap, (loop.time() + delay, self.counter, job))
            self.pending_keys[job.key] = self.counter
            self.condition.notify_all()

    async def cancel(self, guild_id: int, user_id: int, kind: PunishmentKind) -> bool:
        async with self.condition:
            job_id = self.pending_keys.pop((guild_id, user_id, kind.value), None)
            if job_id is None:
                return False
            self.cancelled_ids.add(job_id)
            self.condition.notify_all()
            return True

    async def restore(self, bot: discord.Client) -> int:
        """Schedule every timed punishment stored for the bot's guilds. Returns the count."""
        restored = 0
        for guild in bot.guilds:
            document = await guild_service.get(guild.id)
            if document is None:
                continue
            for kind in PunishmentKind:
                for entry in list(punishment_entries(document, kind)):
                    if entry.expires_at is None:
                        continue
                    await self.schedule(guild, entry.user_id, kind, entry.expires_at)
                    restored += 1
        logger.info("[PUNISHMENT SCHEDULER] Restored %d timed punishments", restored)
        return restored

    async def shutdown(self) -> None:
        async with self.condition:
            if self.runner_task:
                self.runner_task.cancel()
            self.heap.clear()
            self.pending_keys.clear()
            self.cancelled_ids.clear()
            self.condition.notify_all()

        if self.runner_task:
            try:
                await self.runner_task
            except asyncio.CancelledError:
                pass
            finally:
                self.runner_task = None

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            async with self.condition:
                while self.heap and self.heap[0][1] in self.cancelled_ids:
                    _, job_id, _ = heapq.heappop(self.heap)
                    self.cancelled_ids.discard(job_id)

                if not self.heap:
                    await self.condition.wait()
                    continue

                run_at, _, _ = self.heap[0]
                delay = run_at - loop.time()
                if delay > 0:
                    try:
                        await asyncio.wait_for(self.condition.wait(), timeout=delay)
                    except asyncio.TimeoutError:
                        pass
                    continue

                _, job_id, job = heapq.heappop(self.heap)
                if self.pending_keys.get(job.key) == job_id:
                    del self.pending_keys[job.key]

            try:
                await self.execute(job)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error("[PUNISHMENT SCHEDULER] Failed to lift %s of %s: %s", job.kind.value, job.user_id, exc)

    async def execute(self, job: PunishmentJob) -> None:
        await lift_punishment(job.guild, job.user_id, job.kind, job.reason)


PUNISHMENT_SCHEDULER = PunishmentScheduler()
