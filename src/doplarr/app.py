"""Application bootstrap."""

from __future__ import annotations

import asyncio
from contextlib import suppress
from enum import IntEnum

import aiohttp
import discord
from loguru import logger

from doplarr.channels.discord import DiscordChannel
from doplarr.config import Settings
from doplarr.core.dispatcher import Dispatcher
from doplarr.core.registry import SessionRegistry
from doplarr.errors import BackendError, ConfigurationError
from doplarr.providers import connect_backends
from doplarr.providers.api import build_http_client


class ExitCode(IntEnum):
    OK = 0
    CONFIGURATION = 1
    BACKEND = 2
    CHAT_PLATFORM = 3


async def run_app(settings: Settings) -> ExitCode:
    """Connect backends, then serve the chat surface until it stops."""
    async with build_http_client() as http:
        try:
            backends = await connect_backends(settings.backends, http)
        except (BackendError, ConfigurationError) as exc:
            logger.error("app.backends.failed error={}", exc)
            return ExitCode.BACKEND

        registry = SessionRegistry()
        dispatcher = Dispatcher(registry, backends, public_followup=settings.public_followup)
        channel = DiscordChannel(settings.discord_token, dispatcher)
        reaper = registry.start_reaper()
        try:
            await channel.start()
        except discord.LoginFailure:
            logger.error("app.discord.login_failed")
            return ExitCode.CHAT_PLATFORM
        except discord.DiscordException as exc:
            logger.error("app.discord.failed error={}", exc)
            return ExitCode.CHAT_PLATFORM
        except (OSError, aiohttp.ClientError) as exc:
            logger.error("app.discord.unreachable error={}", exc)
            return ExitCode.CHAT_PLATFORM
        finally:
            reaper.cancel()
            with suppress(asyncio.CancelledError):
                await reaper
            await dispatcher.shutdown()
    return ExitCode.OK
