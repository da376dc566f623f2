"""Radarr movie backend."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import httpx
from loguru import logger

from doplarr.core.details import details_by_key
from doplarr.core.models import DropdownOption, MediaDisplayInfo, RequestDetail, SuccessMessage
from doplarr.errors import BackendProtocolError, ConfigurationError
from doplarr.providers.api import ArrClient, expect_list
from doplarr.providers.base import MediaKind
from doplarr.providers.fields import enum_detail, folder_and_profile_details, select_configured, usable

if TYPE_CHECKING:
    from doplarr.config import RadarrConfig


class RadarrMonitor(StrEnum):
    MOVIE_ONLY = "movieOnly"
    MOVIE_AND_COLLECTION = "movieAndCollection"
    NONE = "none"


class MovieStatus(StrEnum):
    TBA = "tba"
    ANNOUNCED = "announced"
    IN_CINEMAS = "inCinemas"
    RELEASED = "released"
    DELETED = "deleted"


MONITOR_TITLES = {
    RadarrMonitor.MOVIE_AND_COLLECTION: "Movie and Collection",
    RadarrMonitor.MOVIE_ONLY: "Movie Only",
    RadarrMonitor.NONE: "None",
}

AVAILABILITY_TITLES = {
    MovieStatus.TBA: "To Be Announced",
    MovieStatus.ANNOUNCED: "Announced",
    MovieStatus.IN_CINEMAS: "In Cinemas",
    MovieStatus.RELEASED: "Released",
    MovieStatus.DELETED: "Deleted",
}

ROOT_FOLDER_KEY = "radarr:root_folder"
MONITOR_KEY = "radarr:monitor"
AVAILABILITY_KEY = "radarr:availability"
QUALITY_PROFILE_KEY = "radarr:quality_profile"


@dataclass(frozen=True)
class Movie:
    """One movie lookup result, keeping the raw payload for the add call."""

    title: str
    year: int | None
    id: int | None
    tmdb_id: int | None
    overview: str | None
    remote_poster: str | None
    raw: dict[str, Any] = field(repr=False, compare=False)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Movie:
        return cls(
            title=payload.get("title") or "",
            year=payload.get("year") or None,
            id=payload.get("id") or None,
            tmdb_id=payload.get("tmdbId"),
            overview=payload.get("overview"),
            remote_poster=payload.get("remotePoster"),
            raw=payload,
        )

    def to_dropdown(self) -> DropdownOption:
        return DropdownOption(
            title=self.title,
            description=str(self.year) if self.year else None,
            id=self.id,
        )


class Radarr:
    """Movie backend; connection-time choices are fixed in ``connect``."""

    kind = MediaKind.MOVIE

    def __init__(
        self,
        client: ArrClient,
        *,
        rootfolders: list[dict[str, Any]],
        quality_profiles: list[dict[str, Any]],
        monitor: Sequence[RadarrMonitor],
        minimum_availability: Sequence[MovieStatus],
    ) -> None:
        self._client = client
        self._rootfolders = rootfolders
        self._quality_profiles = quality_profiles
        self._monitor = tuple(monitor)
        self._minimum_availability = tuple(minimum_availability)

    @classmethod
    async def connect(cls, config: RadarrConfig, http: httpx.AsyncClient) -> Radarr:
        logger.info("radarr.connect url={}", config.url)
        client = ArrClient("radarr", config.url, config.api_key, http)

        rootfolders = usable(
            expect_list(await client.get("rootfolder", context="Failed to get root folders from Radarr"), "rootfolder"),
            "path",
        )
        logger.trace("radarr.rootfolders count={}", len(rootfolders))
        quality_profiles = usable(
            expect_list(
                await client.get("qualityprofile", context="Failed to get quality profiles from Radarr"),
                "qualityprofile",
            ),
            "name",
        )
        logger.trace("radarr.quality_profiles count={}", len(quality_profiles))

        rootfolders = select_configured(rootfolders, config.rootfolder, "path", "Root folder")
        quality_profiles = select_configured(quality_profiles, config.quality_profile, "name", "Quality profile")
        if not rootfolders or not quality_profiles:
            raise ConfigurationError("Radarr has no root folders or quality profiles configured")

        monitor = [config.monitor_type] if config.monitor_type else list(MONITOR_TITLES)
        availability = [config.minimum_availability] if config.minimum_availability else list(AVAILABILITY_TITLES)
        return cls(
            client,
            rootfolders=rootfolders,
            quality_profiles=quality_profiles,
            monitor=monitor,
            minimum_availability=availability,
        )

    async def search(self, term: str) -> list[Movie]:
        logger.info("radarr.search term={}", term)
        payload = await self._client.get("movie/lookup", params={"term": term}, context="Failed to search Radarr")
        results = [Movie.from_payload(entry) for entry in expect_list(payload, "movie/lookup")]
        logger.debug("radarr.search.done count={}", len(results))
        return results

    def early_stop(self, item: Movie) -> bool:
        return item.id is not None

    def display_info(self, item: Movie) -> MediaDisplayInfo:
        return MediaDisplayInfo(
            title=item.title,
            subtitle=str(item.year) if item.year else None,
            description=item.overview,
            thumbnail_url=item.remote_poster,
        )

    async def additional_details(self, item: Movie) -> list[RequestDetail]:
        rootfolder, quality_profile = folder_and_profile_details(
            self._rootfolders,
            self._quality_profiles,
            root_folder_key=ROOT_FOLDER_KEY,
            quality_profile_key=QUALITY_PROFILE_KEY,
        )
        return [
            rootfolder,
            enum_detail("Monitor", self._monitor, MONITOR_TITLES, MONITOR_KEY),
            enum_detail("Minimum Availability", self._minimum_availability, AVAILABILITY_TITLES, AVAILABILITY_KEY),
            quality_profile,
        ]

    async def request(self, details: Sequence[RequestDetail], item: Movie) -> None:
        payload = build_movie_payload(details, item)
        logger.info("radarr.request title={} tmdb_id={}", item.title, item.tmdb_id)
        logger.debug(
            "radarr.request.details rootfolder={} quality_profile_id={} monitor={} minimum_availability={}",
            payload["rootFolderPath"],
            payload["qualityProfileId"],
            payload["addOptions"]["monitor"],
            payload["minimumAvailability"],
        )
        await self._client.post("movie", payload, context="Failed to add movie to Radarr")

    def success_message(self, details: Sequence[RequestDetail], item: Movie) -> SuccessMessage:
        return SuccessMessage(
            title="Request Successful",
            description=f"{item.title} ({item.year or 0}) has been requested and will be downloaded when available.",
            thumbnail_url=item.remote_poster,
        )


def build_movie_payload(details: Sequence[RequestDetail], item: Movie) -> dict[str, Any]:
    selections = details_by_key(details)
    try:
        rootfolder = selections[ROOT_FOLDER_KEY].title
        quality_profile_id = selections[QUALITY_PROFILE_KEY].id
        monitor = RadarrMonitor(selections[MONITOR_KEY].id)
        availability = MovieStatus(selections[AVAILABILITY_KEY].id)
    except (KeyError, ValueError) as exc:
        raise BackendProtocolError(f"incomplete Radarr request details: {exc}") from exc
    if not isinstance(quality_profile_id, int) or isinstance(quality_profile_id, bool):
        raise BackendProtocolError("quality profile must have an integer id")

    payload = dict(item.raw)
    payload.update(
        qualityProfileId=quality_profile_id,
        minimumAvailability=availability.value,
        rootFolderPath=rootfolder,
        addOptions={"monitor": monitor.value, "searchForMovie": True},
    )
    if monitor is not RadarrMonitor.NONE:
        payload["monitored"] = True
    return payload

