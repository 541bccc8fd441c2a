"""Tests for verification requirement checks."""

from zero.datatypes.guild_document import MaxedStatsRequirement, Section, Threshold, VerificationRequirements
from zero.datatypes.realmeye import CharacterEntry, PlayerProfile
from zero.verification.requirements import meets_maxed_stats, preliminary_check, requirements_text


def make_section(stars=None, fame=None, stats=None, show=True):
    requirements = VerificationRequirements()
    if stars is not None:
        requirements.stars = Threshold(True, stars)
    if fame is not None:
        requirements.alive_fame = Threshold(True, fame)
    if stats is not None:
        requirements.maxed_stats = MaxedStatsRequirement(True, stats)
    return Section(name="Main", is_main=True, requirements=requirements, show_requirements=show)


def make_profile(rank=50, fame=1000, maxed=(), hidden=False):
    return PlayerProfile(
        name="Alchemist",
        rank=rank,
        alive_fame=fame,
        characters=[CharacterEntry(character_class="Wizard", stats_maxed=value) for value in maxed],
        characters_hidden=hidden,
    )


def tiers(**needed):
    stats = [0] * 9
    for key, amount in needed.items():
        stats[int(key[1:])] = amount
    return stats


class TestMeetsMaxedStats:
    def test_exact_counts_pass(self):
        counts = tiers(t8=1, t6=2)
        assert meets_maxed_stats(counts, tiers(t8=1, t6=2))

    def test_better_characters_cover_lower_tiers(self):
        assert meets_maxed_stats(tiers(t8=3), tiers(t6=2, t8=1))

    def test_worse_characters_never_cover_higher_tiers(self):
        assert not meets_maxed_stats(tiers(t6=5), tiers(t8=1))

    def test_nothing_required(self):
        assert meets_maxed_stats([0] * 9, [0] * 9)


class TestPreliminaryCheck:
    def test_disabled_requirements_always_pass(self):
        result = preliminary_check(make_section(), make_profile(rank=0, fame=0))
        assert result.passed_all
        assert result.failed_requirements == []

    def test_stars_and_fame_thresholds(self):
        result = preliminary_check(make_section(stars=60, fame=500), make_profile(rank=55, fame=500))
        assert not result.passed_stars
        assert result.passed_fame
        assert result.failed_requirements == ["Stars: 55/60"]

    def test_counts_characters_per_tier(self):
        result = preliminary_check(make_section(stats=tiers(t8=1)), make_profile(maxed=(8, 6, 6, 0)))
        assert result.passed_characters
        assert result.character_counts[8] == 1
        assert result.character_counts[6] == 2
        assert result.character_counts[0] == 1

    def test_missing_tier_is_reported(self):
        result = preliminary_check(make_section(stats=tiers(t8=2)), make_profile(maxed=(8, 7)))
        assert not result.passed_all
        assert result.failed_requirements == ["8/8 Characters: 1/2"]

    def test_hidden_characters_fail_maxed_stats(self):
        result = preliminary_check(make_section(stats=tiers(t6=1)), make_profile(hidden=True))
        assert not result.passed_characters
        assert result.failed_requirements == ["Maxed Stats: characters are hidden"]

    def test_hidden_characters_fine_without_maxed_stats(self):
        result = preliminary_check(make_section(stars=10), make_profile(hidden=True))
        assert result.passed_all


def test_requirements_text_lists_enabled_requirements():
    text = requirements_text(make_section(stars=40, fame=200, stats=tiers(t8=1)))
    assert "• 200 Alive Fame." in text
    assert "• 40 Stars." in text
    assert "• 1 8/8 Character(s)." in text
    assert text.startswith("• Public Profile.")


def test_requirements_text_hides_thresholds_when_disabled():
    text = requirements_text(make_section(stars=40, show=False))
    assert "Stars" not in text
    assert "Public Name History" in text
