"""
Prompt/response collectors.

A collector posts a prompt, then waits for the target user to answer with a
message (and optionally a reaction) until a validator accepts the answer, the
user cancels, or the time runs out. Timeouts and cancels are reported as
:class:`CollectorResult` values rather than exceptions so callers can branch
on them directly.

Validators are coroutines taking the answering message and returning the
parsed value, or None to keep waiting. They usually send their own short-lived
error notice when they reject an answer.
"""

from __future__ import annotations

import asyncio
import re
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, Sequence, TypeVar

import discord

from zero.datatypes.errors import ChannelResolutionError
from zero.datatypes.time_unit import TimeUnit
from zero.ui.auto_tick import MessageAutoTick
from zero.util.logger import get_logger
from zero.util.message_utils import (
    default_error_embed,
    invalid_id_embed,
    no_channel_permissions_embed,
    send_temporary,
    try_delete,
)

logger = get_logger("collectors")

T = TypeVar("T")
Validator = Callable[[discord.Message], Awaitable[Optional[T]]]

CHANNEL_MENTION = re.compile(r"^<#(\d+)>$")
ROLE_MENTION = re.compile(r"^<@&(\d+)>$")
LEADING_INTEGER = re.compile(r"^\s*([+-]?\d+)")

REQUIRED_CHANNEL_PERMISSIONS = ["view_channel", "send_messages", "add_reactions", "read_message_history"]


class CollectorResult(Enum):
    TIME = "time"
    CANCEL = "cancel"


def _parse_id(text: str, pattern: re.Pattern[str]) -> Optional[int]:
    text = text.strip()
    match = pattern.match(text)
    if match:
        return int(match.group(1))
    return int(text) if text.isdigit() else None


class GenericMessageCollector(Generic[T]):
    """
    Ask one user a question and collect their answer.

    Parameters
    ----------
    bot:
        Client used to wait for events.
    target:
        A message (its author is asked, in its channel), or a member/user
        (asked in DMs unless ``channel`` is given).
    prompt:
        Embed or text to post as the question.
    duration, unit:
        Lifetime of the collector.
    channel:
        Explicit channel to ask in.
    countdown:
        Keep the footer of an embed prompt counting down the time left.

    Raises
    ------
    ChannelResolutionError
        If no channel can be determined from ``target`` and ``channel``.
    """

    def __init__(
        self,
        bot: discord.Client,
        target: Any,
        prompt: discord.Embed | str,
        duration: float,
        unit: TimeUnit = TimeUnit.MINUTE,
        channel: Optional[discord.abc.Messageable] = None,
        countdown: bool = False,
    ) -> None:
        self.bot = bot
        self.prompt = prompt
        self.timeout = unit.to_seconds(duration)
        self.countdown = countdown

        if hasattr(target, "author") and hasattr(target, "channel"):
            self.user = target.author
            self.channel = channel or target.channel
        else:
            self.user = target
            self.channel = channel

        if self.channel is None and not hasattr(self.user, "create_dm"):
            raise ChannelResolutionError("Cannot determine where to send the prompt.")

    async def _resolve_channel(self) -> discord.abc.Messageable:
        if self.channel is None:
            self.channel = await self.user.create_dm()
        return self.channel

    def _payload(self) -> dict:
        if isinstance(self.prompt, str):
            return {"content": self.prompt}
        return {"embed": self.prompt}

    def _start_countdown(self, message: discord.Message) -> Optional[MessageAutoTick]:
        if not self.countdown or not isinstance(self.prompt, discord.Embed):
            return None
        return MessageAutoTick(message, self.prompt, self.timeout).start()

    def _message_check(self, channel: Any) -> Callable[[discord.Message], bool]:
        def check(message: discord.Message) -> bool:
            return message.author.id == self.user.id and message.channel.id == channel.id

        return check

    async def _handle_message(
        self,
        message: discord.Message,
        validate: Validator[T],
        cancel_flag: Optional[str],
        delete_responses: bool,
    ) -> T | CollectorResult | None:
        if delete_responses and message.guild is not None:
            await try_delete(message)
        if cancel_flag and message.content.strip().lower() == cancel_flag.lower():
            return CollectorResult.CANCEL
        return await validate(message)

    async def send(
        self,
        validate: Validator[T],
        cancel_flag: Optional[str] = "cancel",
        delete_responses: bool = True,
    ) -> T | CollectorResult:
        """Post the prompt and wait for an accepted answer.

        Returns the validator's value, ``CollectorResult.CANCEL`` when the user
        types the cancel flag, or ``CollectorResult.TIME`` on timeout. The
        prompt is deleted in every case.
        """
        channel = await self._resolve_channel()
        prompt_message = await channel.send(**self._payload())
        ticker = self._start_countdown(prompt_message)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        check = self._message_check(channel)

        try:
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    return CollectorResult.TIME
                try:
                    message = await self.bot.wait_for("message", check=check, timeout=remaining)
                except asyncio.TimeoutError:
                    return CollectorResult.TIME

                result = await self._handle_message(message, validate, cancel_flag, delete_responses)
                if result is not None:
                    return result
        finally:
            if ticker is not None:
                await ticker.stop()
            await try_delete(prompt_message)

    async def send_with_reactions(
        self,
        validate: Validator[T],
        reactions: Sequence[str],
        cancel_flag: Optional[str] = "cancel",
        react_to_message: bool = True,
        delete_message: bool = True,
        clear_reactions_after: bool = False,
        existing_message: Optional[discord.Message] = None,
        delete_responses: bool = True,
    ) -> T | str | CollectorResult:
        """Like :meth:`send`, but a press on one of ``reactions`` also answers.

        A reaction answer is returned as the emoji string.
        """
        channel = await self._resolve_channel()
        if existing_message is not None:
            prompt_message = existing_message
            await prompt_message.edit(**self._payload())
        else:
            prompt_message = await channel.send(**self._payload())

        reactor = asyncio.create_task(add_reactions(prompt_message, reactions)) if react_to_message else None
        ticker = self._start_countdown(prompt_message)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        message_check = self._message_check(channel)

        def reaction_check(reaction: discord.Reaction, user: discord.abc.User) -> bool:
            return (
                user.id == self.user.id
                and reaction.message.id == prompt_message.id
                and str(reaction.emoji) in reactions
            )

        try:
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    return CollectorResult.TIME

                message_wait = asyncio.create_task(
                    self.bot.wait_for("message", check=message_check, timeout=remaining)
                )
                reaction_wait = asyncio.create_task(
                    self.bot.wait_for("reaction_add", check=reaction_check, timeout=remaining)
                )
                done, pending = await asyncio.wait(
                    {message_wait, reaction_wait}, return_when=asyncio.FIRST_COMPLETED
                )
                for task in pending:
                    task.cancel()

                # both waits can finish in the same round; the typed answer wins
                timed_out = True
                for finished in (message_wait, reaction_wait):
                    if finished not in done:
                        continue
                    try:
                        outcome = finished.result()
                    except asyncio.TimeoutError:
                        continue
                    timed_out = False

                    if finished is reaction_wait:
                        reaction, _ = outcome
                        return str(reaction.emoji)
                    result = await self._handle_message(outcome, validate, cancel_flag, delete_responses)
                    if result is not None:
                        return result
                if timed_out:
                    return CollectorResult.TIME
        finally:
            if reactor is not None and not reactor.done():
                reactor.cancel()
            if ticker is not None:
                await ticker.stop()
            if delete_message:
                await try_delete(prompt_message)
            elif clear_reactions_after:
                try:
                    await prompt_message.clear_reactions()
                except discord.HTTPException as exc:
                    logger.debug("Could not clear reactions: %s", exc)

    # ------------------------------------------------------------------
    # Validator factories
    # ------------------------------------------------------------------

    @staticmethod
    def get_channel_prompt(origin: discord.Message) -> Validator[discord.TextChannel]:
        """Accept a text channel mention or ID the bot can fully use."""

        async def validate(message: discord.Message) -> Optional[discord.TextChannel]:
            guild = origin.guild
            channel_id = _parse_id(message.content, CHANNEL_MENTION)
            channel = guild.get_channel(channel_id) if channel_id is not None else None
            if not isinstance(channel, discord.TextChannel):
                await send_temporary(message.channel, embed=invalid_id_embed(message.author, "Channel"))
                return None

            permissions = channel.permissions_for(guild.me)
            missing = [name for name in REQUIRED_CHANNEL_PERMISSIONS if not getattr(permissions, name, False)]
            if missing:
                await send_temporary(
                    message.channel, embed=no_channel_permissions_embed(message.author, channel, missing)
                )
                return None
            return channel

        return validate

    @staticmethod
    def get_role_prompt(origin: discord.Message) -> Validator[discord.Role]:
        """Accept a role mention or ID."""

        async def validate(message: discord.Message) -> Optional[discord.Role]:
            role_id = _parse_id(message.content, ROLE_MENTION)
            role = origin.guild.get_role(role_id) if role_id is not None else None
            if role is None:
                await send_temporary(message.channel, embed=invalid_id_embed(message.author, "Role"))
            return role

        return validate

    @staticmethod
    def get_number(
        channel: discord.abc.Messageable,
        minimum: Optional[int] = None,
        maximum: Optional[int] = None,
    ) -> Validator[int]:
        """Accept an integer within the optional bounds; leading digits are enough."""

        async def validate(message: discord.Message) -> Optional[int]:
            match = LEADING_INTEGER.match(message.content)
            if not match:
                await send_temporary(
                    channel, embed=default_error_embed(message.author, "Please type a valid number.")
                )
                return None

            number = int(match.group(1))
            if minimum is not None and number < minimum:
                await send_temporary(
                    channel,
                    embed=default_error_embed(message.author, f"The number must be at least `{minimum}`."),
                )
                return None
            if maximum is not None and number > maximum:
                await send_temporary(
                    channel,
                    embed=default_error_embed(message.author, f"The number must be at most `{maximum}`."),
                )
                return None
            return number

        return validate

    @staticmethod
    def get_string_prompt(
        channel: discord.abc.Messageable,
        min_chars: Optional[int] = None,
        max_chars: Optional[int] = None,
        regex: Optional[re.Pattern[str]] = None,
        regex_fail_message: Optional[str] = None,
    ) -> Validator[str]:
        """Accept text whose length and shape satisfy the given constraints."""

        async def validate(message: discord.Message) -> Optional[str]:
            content = message.content
            problem = None
            if min_chars is not None and len(content) < min_chars:
                problem = f"Your message must be at least `{min_chars}` characters long."
            elif max_chars is not None and len(content) > max_chars:
                problem = f"Your message must be at most `{max_chars}` characters long."
            elif regex is not None and not regex.search(content):
                problem = regex_fail_message or "Your message is not in the expected format."

            if problem:
                await send_temporary(channel, embed=default_error_embed(message.author, problem))
                return None
            return content

        return validate

    @staticmethod
    def get_yes_no_prompt(channel: discord.abc.Messageable) -> Validator[bool]:
        """Accept yes/ye/y as True and no/n as False."""

        async def validate(message: discord.Message) -> Optional[bool]:
            answer = message.content.strip().lower()
            if answer in ("yes", "ye", "y"):
                return True
            if answer in ("no", "n"):
                return False
            await send_temporary(channel, embed=default_error_embed(message.author, "Please answer `yes` or `no`."))
            return None

        return validate


async def add_reactions(message: discord.Message, reactions: Sequence[str]) -> None:
    """React with each emoji in order, stopping quietly if the message is gone."""
    for emoji in reactions:
        try:
            await message.add_reaction(emoji)
        except discord.HTTPException as exc:
            logger.debug("Stopped adding reactions to %s: %s", message.id, exc)
            return
