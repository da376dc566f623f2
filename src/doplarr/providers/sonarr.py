"""Sonarr series backend."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import httpx
from loguru import logger

from doplarr.core.details import details_by_key
from doplarr.core.models import DropdownOption, FieldType, MediaDisplayInfo, RequestDetail, SuccessMessage
from doplarr.errors import BackendProtocolError, ConfigurationError
from doplarr.providers.api import ArrClient, expect_list, expect_object
from doplarr.providers.base import MediaKind
from doplarr.providers.fields import enum_detail, folder_and_profile_details, select_configured, usable

if TYPE_CHECKING:
    from doplarr.config import SonarrConfig


class SonarrMonitor(StrEnum):
    UNKNOWN = "unknown"
    ALL = "all"
    FUTURE = "future"
    MISSING = "missing"
    EXISTING = "existing"
    FIRST_SEASON = "firstSeason"
    LAST_SEASON = "lastSeason"
    LATEST_SEASON = "latestSeason"
    PILOT = "pilot"
    RECENT = "recent"
    MONITOR_SPECIALS = "monitorSpecials"
    UNMONITOR_SPECIALS = "unmonitorSpecials"
    NONE = "none"
    SKIP = "skip"


class SeriesType(StrEnum):
    STANDARD = "standard"
    DAILY = "daily"
    ANIME = "anime"


MONITOR_TITLES = {
    SonarrMonitor.UNKNOWN: "Unknown",
    SonarrMonitor.ALL: "All",
    SonarrMonitor.FUTURE: "Future",
    SonarrMonitor.MISSING: "Missing",
    SonarrMonitor.EXISTING: "Existing",
    SonarrMonitor.FIRST_SEASON: "First Season",
    SonarrMonitor.LAST_SEASON: "Last Season",
    SonarrMonitor.LATEST_SEASON: "Latest Season",
    SonarrMonitor.PILOT: "Pilot",
    SonarrMonitor.RECENT: "Recent",
    SonarrMonitor.MONITOR_SPECIALS: "Monitor Specials",
    SonarrMonitor.UNMONITOR_SPECIALS: "Unmonitor Specials",
    SonarrMonitor.NONE: "None",
    SonarrMonitor.SKIP: "Skip",
}

# Offered when neither monitor_type nor allowed_monitor_types is configured.
DEFAULT_MONITOR_CHOICES = (
    SonarrMonitor.ALL,
    SonarrMonitor.FUTURE,
    SonarrMonitor.MISSING,
    SonarrMonitor.EXISTING,
    SonarrMonitor.FIRST_SEASON,
    SonarrMonitor.LAST_SEASON,
    SonarrMonitor.LATEST_SEASON,
    SonarrMonitor.PILOT,
    SonarrMonitor.RECENT,
    SonarrMonitor.MONITOR_SPECIALS,
    SonarrMonitor.UNMONITOR_SPECIALS,
    SonarrMonitor.NONE,
)

SERIES_TYPE_TITLES = {
    SeriesType.STANDARD: "Standard",
    SeriesType.DAILY: "Daily",
    SeriesType.ANIME: "Anime",
}

ROOT_FOLDER_KEY = "sonarr:root_folder"
MONITOR_KEY = "sonarr:monitor"
SERIES_TYPE_KEY = "sonarr:series_type"
QUALITY_PROFILE_KEY = "sonarr:quality_profile"
SEASON_FOLDER_KEY = "sonarr:season_folder"
SEASON_KEY = "sonarr:season"

ALL_REMAINING_SEASONS = "all"
MISSING_EPISODES = "missing"


@dataclass(frozen=True)
class Series:
    """One series lookup result, keeping the raw payload for the add call."""

    title: str
    year: int | None
    id: int | None
    tvdb_id: int | None
    overview: str | None
    remote_poster: str | None
    raw: dict[str, Any] = field(repr=False, compare=False)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Series:
        return cls(
            title=payload.get("title") or "",
            year=payload.get("year") or None,
            id=payload.get("id") or None,
            tvdb_id=payload.get("tvdbId"),
            overview=payload.get("overview"),
            remote_poster=payload.get("remotePoster"),
            raw=payload,
        )

    @property
    def exists(self) -> bool:
        return self.id is not None

    def to_dropdown(self) -> DropdownOption:
        return DropdownOption(
            title=self.title,
            description=str(self.year) if self.year else None,
            id=self.id,
        )


def unmonitored_seasons(payload: dict[str, Any]) -> list[int]:
    """Season numbers (specials excluded) that are not monitored yet."""
    seasons = payload.get("seasons") or []
    return sorted(
        season["seasonNumber"]
        for season in seasons
        if isinstance(season, dict) and season.get("seasonNumber", 0) > 0 and not season.get("monitored")
    )


def monitor_choices(config: SonarrConfig) -> list[SonarrMonitor]:
    if config.monitor_type is not None:
        return [config.monitor_type]
    if config.allowed_monitor_types:
        return list(dict.fromkeys(config.allowed_monitor_types))
    return list(DEFAULT_MONITOR_CHOICES)


class Sonarr:
    """Series backend; connection-time choices are fixed in ``connect``."""

    kind = MediaKind.SERIES

    def __init__(
        self,
        client: ArrClient,
        *,
        rootfolders: list[dict[str, Any]],
        quality_profiles: list[dict[str, Any]],
        monitor: Sequence[SonarrMonitor],
        series_type: Sequence[SeriesType],
        season_folder: bool | None,
    ) -> None:
        self._client = client
        self._rootfolders = rootfolders
        self._quality_profiles = quality_profiles
        self._monitor = tuple(monitor)
        self._series_type = tuple(series_type)
        self._season_folder = season_folder

    @classmethod
    async def connect(cls, config: SonarrConfig, http: httpx.AsyncClient) -> Sonarr:
        logger.info("sonarr.connect url={}", config.url)
        client = ArrClient("sonarr", config.url, config.api_key, http)

        rootfolders = usable(
            expect_list(await client.get("rootfolder", context="Failed to get root folders from Sonarr"), "rootfolder"),
            "path",
        )
        quality_profiles = usable(
            expect_list(
                await client.get("qualityprofile", context="Failed to get quality profiles from Sonarr"),
                "qualityprofile",
            ),
            "name",
        )

        rootfolders = select_configured(rootfolders, config.rootfolder, "path", "Root folder")
        quality_profiles = select_configured(quality_profiles, config.quality_profile, "name", "Quality profile")
        if not rootfolders or not quality_profiles:
            raise ConfigurationError("Sonarr has no root folders or quality profiles configured")

        series_type = [config.series_type] if config.series_type else list(SERIES_TYPE_TITLES)
        return cls(
            client,
            rootfolders=rootfolders,
            quality_profiles=quality_profiles,
            monitor=monitor_choices(config),
            series_type=series_type,
            season_folder=config.season_folders,
        )

    async def search(self, term: str) -> list[Series]:
        logger.info("sonarr.search term={}", term)
        payload = await self._client.get("series/lookup", params={"term": term}, context="Failed to search Sonarr")
        results = [Series.from_payload(entry) for entry in expect_list(payload, "series/lookup")]
        logger.debug("sonarr.search.done count={}", len(results))
        return results

    def early_stop(self, item: Series) -> bool:
        # A present series may still have seasons or missing episodes to add.
        return False

    def display_info(self, item: Series) -> MediaDisplayInfo:
        return MediaDisplayInfo(
            title=item.title,
            subtitle=str(item.year) if item.year else None,
            description=item.overview,
            thumbnail_url=item.remote_poster,
        )

    async def additional_details(self, item: Series) -> list[RequestDetail]:
        if item.exists:
            return [await self._season_detail(item)]

        rootfolder, quality_profile = folder_and_profile_details(
            self._rootfolders,
            self._quality_profiles,
            root_folder_key=ROOT_FOLDER_KEY,
            quality_profile_key=QUALITY_PROFILE_KEY,
        )
        return [
            rootfolder,
            enum_detail("Monitor", self._monitor, MONITOR_TITLES, MONITOR_KEY),
            enum_detail("Series Type", self._series_type, SERIES_TYPE_TITLES, SERIES_TYPE_KEY),
            quality_profile,
            self._season_folder_detail(),
        ]

    def _season_folder_detail(self) -> RequestDetail:
        if self._season_folder is None:
            options: tuple[DropdownOption, ...] = (
                DropdownOption(title="Yes", id=True),
                DropdownOption(title="No", id=False),
            )
        else:
            options = (DropdownOption(title="Yes" if self._season_folder else "No", id=self._season_folder),)
        return RequestDetail(
            title="Use Season Folders",
            options=options,
            metadata_key=SEASON_FOLDER_KEY,
            field_type=FieldType.BOOLEAN,
        )

    async def _season_detail(self, item: Series) -> RequestDetail:
        current = expect_object(
            await self._client.get(f"series/{item.id}", context="Failed to read series from Sonarr"), "series"
        )
        seasons = unmonitored_seasons(current)
        logger.debug("sonarr.series.unmonitored id={} seasons={}", item.id, seasons)
        if not seasons:
            options: tuple[DropdownOption, ...] = (
                DropdownOption(
                    title="Missing Episodes",
                    description="Every season is monitored; search for missing episodes",
                    id=MISSING_EPISODES,
                ),
            )
        else:
            season_options = tuple(DropdownOption(title=f"Season {number}", id=number) for number in seasons)
            if len(seasons) > 1:
                all_remaining = DropdownOption(title="All Remaining Seasons", id=ALL_REMAINING_SEASONS)
                season_options = (all_remaining, *season_options)
            options = season_options
        return RequestDetail(title="Season", options=options, metadata_key=SEASON_KEY)

    async def request(self, details: Sequence[RequestDetail], item: Series) -> None:
        if item.exists:
            await self._request_existing(details, item)
            return
        payload = build_series_payload(details, item)
        logger.info("sonarr.request title={} tvdb_id={}", item.title, item.tvdb_id)
        await self._client.post("series", payload, context="Failed to add series to Sonarr")

    async def _request_existing(self, details: Sequence[RequestDetail], item: Series) -> None:
        selection = details_by_key(details).get(SEASON_KEY)
        if selection is None:
            raise BackendProtocolError("existing series request needs a season selection")

        if selection.id != MISSING_EPISODES:
            current = expect_object(
                await self._client.get(f"series/{item.id}", context="Failed to read series from Sonarr"), "series"
            )
            if selection.id == ALL_REMAINING_SEASONS:
                wanted = set(unmonitored_seasons(current))
            elif isinstance(selection.id, int) and not isinstance(selection.id, bool):
                wanted = {selection.id}
            else:
                raise BackendProtocolError(f"unexpected season selection {selection.id!r}")
            for season in current.get("seasons") or []:
                if season.get("seasonNumber") in wanted:
                    season["monitored"] = True
            current["monitored"] = True
            logger.info("sonarr.request.seasons title={} seasons={}", item.title, sorted(wanted))
            await self._client.put(f"series/{item.id}", current, context="Failed to update series in Sonarr")

        await self._client.post(
            "command",
            {"name": "SeriesSearch", "seriesId": item.id},
            context="Failed to start series search in Sonarr",
        )

    def success_message(self, details: Sequence[RequestDetail], item: Series) -> SuccessMessage:
        year = item.year or 0
        selection = details_by_key(details).get(SEASON_KEY)
        if selection is not None and selection.id != MISSING_EPISODES:
            description = (
                f"{selection.title} of {item.title} ({year}) has been requested and will be downloaded when available."
            )
        elif selection is not None:
            description = f"Missing episodes of {item.title} ({year}) will be searched for."
        else:
            description = f"{item.title} ({year}) has been requested and will be downloaded when available."
        return SuccessMessage(title="Request Successful", description=description, thumbnail_url=item.remote_poster)


def build_series_payload(details: Sequence[RequestDetail], item: Series) -> dict[str, Any]:
    selections = details_by_key(details)
    try:
        rootfolder = selections[ROOT_FOLDER_KEY].title
        quality_profile_id = selections[QUALITY_PROFILE_KEY].id
        monitor = SonarrMonitor(selections[MONITOR_KEY].id)
        series_type = SeriesType(selections[SERIES_TYPE_KEY].id)
        season_folder = selections[SEASON_FOLDER_KEY].id
    except (KeyError, ValueError) as exc:
        raise BackendProtocolError(f"incomplete Sonarr request details: {exc}") from exc
    if not isinstance(quality_profile_id, int) or isinstance(quality_profile_id, bool):
        raise BackendProtocolError("quality profile must have an integer id")
    if not isinstance(season_folder, bool):
        raise BackendProtocolError("season folder must have a boolean id")

    payload = dict(item.raw)
    payload.update(
        qualityProfileId=quality_profile_id,
        seriesType=series_type.value,
        rootFolderPath=rootfolder,
        seasonFolder=season_folder,
        addOptions={
            "ignoreEpisodesWithFiles": False,
            "ignoreEpisodesWithoutFiles": False,
            "monitor": monitor.value,
            "searchForCutoffUnmetEpisodes": False,
            "searchForMissingEpisodes": True,
        },
    )
    if monitor is not SonarrMonitor.NONE:
        payload["monitored"] = True
    return payload
