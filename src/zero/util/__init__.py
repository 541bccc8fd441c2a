"""
Utility functions and helpers for Zero.

- **logger.py**: Centralized logging with colored console output through
  prompt_toolkit and a per-session rotating log file.
- **message_utils.py**: Canned embeds and best-effort send/delete/DM helpers.
- **user_handler.py**: Member resolution by mention, ID or in-game name, and
  team-role bookkeeping.
- **string_utils.py**, **array_utils.py**, **date_utils.py**: Formatting and
  ranking helpers used by commands.
"""
