"""Pass/fail evaluation of a section's verification requirements."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from zero.datatypes.guild_document import Section
from zero.datatypes.realmeye import PlayerProfile
from zero.util.string_utils import StringBuilder


@dataclass(slots=True)
class RequirementCheck:
    rank: int
    alive_fame: int
    passed_stars: bool
    passed_fame: bool
    passed_characters: bool
    # character_counts[i] = characters with exactly i/8 maxed stats
    character_counts: List[int] = field(default_factory=lambda: [0] * 9)
    failed_requirements: List[str] = field(default_factory=list)

    @property
    def passed_all(self) -> bool:
        return self.passed_stars and self.passed_fame and self.passed_characters


def count_maxed_characters(profile: PlayerProfile) -> List[int]:
    counts = [0] * 9
    for character in profile.characters:
        if 0 <= character.stats_maxed <= 8:
            counts[character.stats_maxed] += 1
    return counts


def meets_maxed_stats(counts: List[int], required: List[int]) -> bool:
    """Check per-tier character counts against per-tier minimums.

    Tiers are walked from 8/8 down to 0/8. A surplus of better characters is
    carried down and may cover a shortfall in a lower tier, but a shortfall is
    never covered by worse characters.
    """
    extras = 0
    for tier in range(8, -1, -1):
        extras += counts[tier] - required[tier]
        if extras < 0:
            return False
    return True


def preliminary_check(section: Section, profile: PlayerProfile) -> RequirementCheck:
    """Evaluate ``profile`` against every requirement of ``section``.

    Disabled requirements always pass.
    """
    requirements = section.requirements
    counts = count_maxed_characters(profile)

    passed_stars = not requirements.stars.required or profile.rank >= requirements.stars.minimum
    passed_fame = not requirements.alive_fame.required or profile.alive_fame >= requirements.alive_fame.minimum
    passed_characters = not requirements.maxed_stats.required or (
        not profile.characters_hidden and meets_maxed_stats(counts, requirements.maxed_stats.stats)
    )

    failed: List[str] = []
    if not passed_stars:
        failed.append(f"Stars: {profile.rank}/{requirements.stars.minimum}")
    if not passed_fame:
        failed.append(f"Alive Fame: {profile.alive_fame}/{requirements.alive_fame.minimum}")
    if not passed_characters:
        if profile.characters_hidden:
            failed.append("Maxed Stats: characters are hidden")
        else:
            for tier, amount in enumerate(requirements.maxed_stats.stats):
                if amount:
                    failed.append(f"{tier}/8 Characters: {counts[tier]}/{amount}")

    return RequirementCheck(
        rank=profile.rank,
        alive_fame=profile.alive_fame,
        passed_stars=passed_stars,
        passed_fame=passed_fame,
        passed_characters=passed_characters,
        character_counts=counts,
        failed_requirements=failed,
    )


def requirements_text(section: Section) -> str:
    """Bullet list of what a member needs before verifying in ``section``."""
    text = (
        StringBuilder()
        .append("• Public Profile.").append_line()
        .append("• Private \"Last Seen\" Location.").append_line()
        .append("• Public Name History.").append_line()
    )

    if section.show_requirements:
        requirements = section.requirements
        if requirements.alive_fame.required:
            text.append(f"• {requirements.alive_fame.minimum} Alive Fame.").append_line()
        if requirements.stars.required:
            text.append(f"• {requirements.stars.minimum} Stars.").append_line()
        if requirements.maxed_stats.required:
            for tier, amount in enumerate(requirements.maxed_stats.stats):
                if amount:
                    text.append(f"• {amount} {tier}/8 Character(s).").append_line()

    return text.str()
