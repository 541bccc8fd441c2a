"""
Zero - guild management bot for a RotMG community Discord server.

Core Components:

- **Verification**: Links Discord members to in-game accounts by having them put
  a code in their RealmEye description, then checks rank, fame and maxed stats
  against per-section requirements. Failures can go to staff for manual review.
- **Profiles**: Stores each member's main and alternate in-game names plus
  activity counters, merging duplicate profiles when accounts are linked.
- **Commands**: Prefix commands for configuration, quotas, profile management
  and moderation (blacklist, mute, suspend).
- **Interactive Console**: Live bot administration for status checks, guild
  inspection, and graceful restart/shutdown.

Usage:
    from zero.main import main
    main()
"""
