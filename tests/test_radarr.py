from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from doplarr.config import RadarrConfig
from doplarr.errors import BackendRequestFailed, BackendUnavailable, ConfigurationError
from doplarr.providers.radarr import MovieStatus, Radarr, RadarrMonitor

ROOT_FOLDERS = [{"id": 1, "path": "/movies"}, {"id": 2, "path": "/movies-4k"}]
QUALITY_PROFILES = [{"id": 4, "name": "HD-1080p"}, {"id": 6, "name": "Ultra-HD"}]
LOOKUP = [
    {"title": "Heat", "year": 1995, "tmdbId": 949, "overview": "A heist.", "remotePoster": "http://img/heat.jpg"},
    {"title": "Heat", "year": 1986, "tmdbId": 10000, "id": 12},
]


class FakeRadarr:
    def __init__(self, overrides: dict[tuple[str, str], Any] | None = None) -> None:
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], Any] = {
            ("GET", "/api/v3/rootfolder"): ROOT_FOLDERS,
            ("GET", "/api/v3/qualityprofile"): QUALITY_PROFILES,
            ("GET", "/api/v3/movie/lookup"): LOOKUP,
            ("POST", "/api/v3/movie"): {"id": 99},
        }
        self.routes.update(overrides or {})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": "not found"})
        if isinstance(route, httpx.Response):
            return route
        return httpx.Response(200, json=route)


def _config(**kwargs: Any) -> RadarrConfig:
    return RadarrConfig(url="http://radarr:7878/", api_key="radarr-key", **kwargs)


async def _connect(server: FakeRadarr, **kwargs: Any) -> Radarr:
    http = httpx.AsyncClient(transport=httpx.MockTransport(server))
    return await Radarr.connect(_config(**kwargs), http)


@pytest.mark.asyncio
async def test_details_offer_every_choice_by_default() -> None:
    radarr = await _connect(FakeRadarr())
    movie = (await radarr.search("heat"))[0]

    details = await radarr.additional_details(movie)

    assert [detail.title for detail in details] == ["Root Folder", "Monitor", "Minimum Availability", "Quality Profile"]
    assert [option.title for option in details[0].options] == ["/movies", "/movies-4k"]
    assert [option.id for option in details[1].options] == [
        RadarrMonitor.MOVIE_AND_COLLECTION,
        RadarrMonitor.MOVIE_ONLY,
        RadarrMonitor.NONE,
    ]
    assert len(details[2].options) == len(MovieStatus)
    assert [option.id for option in details[3].options] == [4, 6]


@pytest.mark.asyncio
async def test_configured_values_fix_their_fields() -> None:
    radarr = await _connect(
        FakeRadarr(),
        quality_profile="Ultra-HD",
        rootfolder="/movies",
        monitor_type="movieOnly",
        minimum_availability="released",
    )
    movie = (await radarr.search("heat"))[0]

    details = await radarr.additional_details(movie)

    assert all(detail.is_resolved for detail in details)
    assert [detail.selection.title for detail in details] == ["/movies", "Movie Only", "Released", "Ultra-HD"]


@pytest.mark.asyncio
async def test_unknown_quality_profile_lists_available() -> None:
    with pytest.raises(ConfigurationError, match=r"Available options: \[HD-1080p, Ultra-HD\]"):
        await _connect(FakeRadarr(), quality_profile="Nope")


@pytest.mark.asyncio
async def test_search_sends_api_key_and_term() -> None:
    server = FakeRadarr()
    radarr = await _connect(server)

    movies = await radarr.search("heat")

    lookup = server.requests[-1]
    assert lookup.url.params["term"] == "heat"
    assert lookup.headers["X-Api-Key"] == "radarr-key"
    assert str(lookup.url).startswith("http://radarr:7878/api/v3/")
    assert [movie.to_dropdown().description for movie in movies] == ["1995", "1986"]
    assert [radarr.early_stop(movie) for movie in movies] == [False, True]


@pytest.mark.asyncio
async def test_request_posts_movie_payload() -> None:
    server = FakeRadarr()
    radarr = await _connect(server)
    movie = (await radarr.search("heat"))[0]
    root, monitor, availability, profile = await radarr.additional_details(movie)

    details = [root.resolve(1), monitor.resolve(1), availability.resolve(3), profile.resolve(0)]
    await radarr.request(details, movie)

    post = server.requests[-1]
    assert post.method == "POST"
    assert post.url.path == "/api/v3/movie"
    payload = json.loads(post.content)
    assert payload["title"] == "Heat"
    assert payload["tmdbId"] == 949
    assert payload["rootFolderPath"] == "/movies-4k"
    assert payload["qualityProfileId"] == 4
    assert payload["minimumAvailability"] == "released"
    assert payload["monitored"] is True
    assert payload["addOptions"] == {"monitor": "movieOnly", "searchForMovie": True}

    message = radarr.success_message(details, movie)
    assert message.description == "Heat (1995) has been requested and will be downloaded when available."
    assert message.thumbnail_url == "http://img/heat.jpg"


@pytest.mark.asyncio
async def test_error_status_raises_request_failed() -> None:
    server = FakeRadarr({("GET", "/api/v3/movie/lookup"): httpx.Response(401, text="bad key")})
    radarr = await _connect(server)

    with pytest.raises(BackendRequestFailed) as excinfo:
        await radarr.search("heat")
    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_unreachable_backend_fails_connect() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    http = httpx.AsyncClient(transport=httpx.MockTransport(refuse))
    with pytest.raises(BackendUnavailable) as excinfo:
        await Radarr.connect(_config(), http)
    assert excinfo.value.timed_out is False
