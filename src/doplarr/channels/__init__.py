"""Chat channel adapters."""

from doplarr.channels.discord import DiscordChannel, DiscordRenderer

__all__ = ["DiscordChannel", "DiscordRenderer"]
