"""
RealmEye lookups.

Player data comes from a JSON API that mirrors RealmEye profiles. Name history
is not part of that API, so it is scraped from the name history page.
"""

from __future__ import annotations

import asyncio
from typing import List

import aiohttp

from zero.configuration.app_configuration import app_config
from zero.datatypes.realmeye import LookupFailure, NameHistoryEntry, PlayerProfile
from zero.util.logger import get_logger

logger = get_logger("realmeye_client")

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/83.0.4103.61 Safari/537.36"
    )
}

HISTORY_SECTION_MARKER = "</div></div></div></div><ul class"
HISTORY_ROW_MARKER = "<tr><td><span>"
HISTORY_HIDDEN_TEXT = "Name history is hidden"
NO_NAME_CHANGES_TEXT = "No name changes detected."


def parse_name_history(html: str) -> List[NameHistoryEntry] | LookupFailure:
    """Extract name changes from a RealmEye name history page.

    Returns:
        The entries in page order (most recent first), an empty list when the
        player never changed names, ``LookupFailure.HISTORY_HIDDEN`` when the
        history is private, or ``LookupFailure.REQUEST_FAILED`` when the page
        does not look like a name history page.
    """
    sections = html.split(HISTORY_SECTION_MARKER)
    if len(sections) < 2:
        return LookupFailure.REQUEST_FAILED
    below_description = sections[1]

    if HISTORY_HIDDEN_TEXT in below_description:
        return LookupFailure.HISTORY_HIDDEN
    if NO_NAME_CHANGES_TEXT in below_description:
        return []

    history: List[NameHistoryEntry] = []
    for row in below_description.split(HISTORY_ROW_MARKER)[1:]:
        name = row.split("</span>")[0]
        after_name = row.split("</span></td><td>")
        from_date = after_name[1].split("</td><td>")[0] if len(after_name) > 1 else ""

        cells = row.split("</td><td>")
        to_date = ""
        if len(cells) > 2 and "Z</td></tr>" in cells[2]:
            to_date = cells[2].split("</td></tr>")[0]

        history.append(NameHistoryEntry(name=name, from_date=from_date, to_date=to_date))
    return history


class RealmEyeClient:
    """aiohttp-backed client; one session is shared by every lookup."""

    def __init__(self, session: aiohttp.ClientSession | None = None) -> None:
        self._session = session

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=app_config.request_timeout_seconds)
            )
        return self._session

    async def get_player(self, name: str) -> PlayerProfile | LookupFailure:
        """Look up a player's public profile."""
        url = f"{app_config.realmeye_api_url}{name}"
        try:
            async with self._get_session().get(url) as response:
                data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.warning("[REALMEYE] Player lookup for %s failed: %s", name, exc)
            return LookupFailure.REQUEST_FAILED

        if not isinstance(data, dict):
            return LookupFailure.REQUEST_FAILED
        if "error" in data:
            return LookupFailure.PLAYER_NOT_FOUND

        try:
            return PlayerProfile.from_api(data)
        except (TypeError, ValueError) as exc:
            logger.warning("[REALMEYE] Unexpected payload for %s: %s", name, exc)
            return LookupFailure.REQUEST_FAILED

    async def get_name_history(self, name: str) -> List[NameHistoryEntry] | LookupFailure:
        """Scrape a player's name history."""
        url = app_config.name_history_url.format(name)
        try:
            async with self._get_session().get(url, headers=BROWSER_HEADERS) as response:
                html = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.warning("[REALMEYE] Name history lookup for %s failed: %s", name, exc)
            return LookupFailure.REQUEST_FAILED

        return parse_name_history(html)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None


realmeye_client = RealmEyeClient()
