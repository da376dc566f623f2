"""Media backends and their shared capability contract."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

import httpx
from loguru import logger

from doplarr.providers.base import MediaBackend, MediaItem, MediaKind
from doplarr.providers.radarr import Movie, Radarr
from doplarr.providers.sonarr import Series, Sonarr

if TYPE_CHECKING:
    from doplarr.config import RadarrConfig, SonarrConfig

# Closed set of backend kinds; a new kind adds a variant here.
type Backend = Radarr | Sonarr


async def connect_backend(config: RadarrConfig | SonarrConfig, http: httpx.AsyncClient) -> Backend:
    if config.type == "radarr":
        return await Radarr.connect(config, http)  # type: ignore[arg-type]
    return await Sonarr.connect(config, http)  # type: ignore[arg-type]


async def connect_backends(
    configs: Iterable[RadarrConfig | SonarrConfig], http: httpx.AsyncClient
) -> dict[MediaKind, Backend]:
    """Connect every configured backend; any failure aborts startup."""
    backends: dict[MediaKind, Backend] = {}
    for config in configs:
        backends[config.media] = await connect_backend(config, http)
    logger.info("backends.connected kinds={}", [kind.value for kind in backends])
    return backends


__all__ = [
    "Backend",
    "MediaBackend",
    "MediaItem",
    "MediaKind",
    "Movie",
    "Radarr",
    "Series",
    "Sonarr",
    "connect_backend",
    "connect_backends",
]
