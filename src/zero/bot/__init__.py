"""
Discord cogs wiring the bot's features into py-cord's event system.

- **events_listener.py**: lifecycle (on_ready, guild join), member join and
  leave logging, punishment re-application, staff-role upkeep, and clearing
  IDs of deleted roles and channels from the guild document

- **message_listener.py**: routes prefixed messages to the command manager

- **reaction_listener.py**: starts verification from control messages and
  resolves manual verification requests
"""
