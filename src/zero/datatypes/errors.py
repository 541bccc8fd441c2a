"""Domain exceptions raised by Zero."""


class ZeroError(Exception):
    """Base class for errors raised by the bot itself."""


class ProfileNotFoundError(ZeroError):
    """No profile matches the given member or in-game name."""


class ChannelResolutionError(ZeroError, ValueError):
    """A collector could not determine which channel to talk in."""
