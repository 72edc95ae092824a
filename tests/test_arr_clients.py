from datetime import date

import pytest

from mediahub.api.radarr import RadarrClient
from mediahub.api.sonarr import SonarrClient
from mediahub.models.arr import Movie, MovieLookup

MOVIES = [
    {"id": 1, "title": "Heat", "year": 1995, "tmdbId": 949, "sizeOnDisk": 8_500_000_000},
    {"id": 2, "title": "Ronin", "year": 1998, "tmdbId": 8195},
]


@pytest.fixture
def radarr(backend, http_session, cache):
    return RadarrClient(
        f"{backend.url}/radarr",
        "radarr-key",
        session=http_session,
        cache=cache,
        cache_namespace="radarr-1",
    )


@pytest.fixture
def sonarr(backend, http_session):
    return SonarrClient(f"{backend.url}/sonarr", "sonarr-key", session=http_session)


@pytest.mark.asyncio
async def test_radarr_connection(backend, radarr):
    backend.add("GET", "/radarr/api/v3/system/status", json={"version": "5.2.6.8376"})

    result = await radarr.test_connection()

    assert result.success
    assert result.message == "Connected - Radarr v5.2.6.8376"
    call = backend.calls_to("/radarr/api/v3/system/status")[0]
    assert call.headers["X-Api-Key"] == "radarr-key"


@pytest.mark.asyncio
async def test_sonarr_connection_with_wrong_key(backend, sonarr):
    backend.add("GET", "/sonarr/api/v3/system/status", status=401)

    result = await sonarr.test_connection()

    assert not result.success
    assert result.http_status_code == 401


@pytest.mark.asyncio
async def test_lookup_drops_entries_without_provider_id(backend, radarr):
    backend.add(
        "GET",
        "/radarr/api/v3/movie/lookup",
        json=[
            {"title": "Heat", "tmdbId": 949, "year": 1995},
            {"title": "Broken entry"},
        ],
    )

    hits = await radarr.lookup_media(" heat ")

    assert [h.tmdb_id for h in hits] == [949]
    assert isinstance(hits[0], MovieLookup)
    assert backend.calls_to("/radarr/api/v3/movie/lookup")[0].query == {"term": "heat"}


@pytest.mark.asyncio
async def test_library_is_cached_until_refresh(backend, radarr):
    backend.add("GET", "/radarr/api/v3/movie", json=MOVIES)

    first = await radarr.list_library()
    await radarr.list_library()
    assert len(backend.calls_to("/radarr/api/v3/movie")) == 1

    await radarr.list_library(refresh=True)
    assert len(backend.calls_to("/radarr/api/v3/movie")) == 2
    assert all(isinstance(m, Movie) for m in first)
    assert first[0].size_on_disk == 8_500_000_000


@pytest.mark.asyncio
async def test_add_movie_invalidates_library(backend, radarr):
    backend.add("GET", "/radarr/api/v3/movie", json=MOVIES)
    backend.add("POST", "/radarr/api/v3/movie", json={"id": 3, "title": "Thief"})
    lookup = MovieLookup(title="Thief", tmdb_id=11524, year=1981)

    await radarr.list_library()
    added = await radarr.add_movie(lookup, quality_profile_id=4, root_folder_path="/movies")
    await radarr.list_library()

    assert added.id == 3
    body = backend.calls_to("/radarr/api/v3/movie", "POST")[0].json()
    assert body["tmdbId"] == 11524
    assert body["qualityProfileId"] == 4
    assert body["addOptions"] == {"searchForMovie": True}
    assert len(backend.calls_to("/radarr/api/v3/movie", "GET")) == 2


@pytest.mark.asyncio
async def test_delete_media_sends_flags(backend, radarr):
    backend.add("DELETE", "/radarr/api/v3/movie/2", text="")

    await radarr.delete_media(2, delete_files=True)

    assert backend.calls_to("/radarr/api/v3/movie/2")[0].query == {
        "deleteFiles": "true",
        "addImportExclusion": "false",
    }


@pytest.mark.asyncio
async def test_root_folders_report_free_space(backend, radarr):
    backend.add(
        "GET",
        "/radarr/api/v3/rootfolder",
        json=[{"id": 1, "path": "/movies", "freeSpace": 1_099_511_627_776}],
    )

    (folder,) = await radarr.list_root_folders()

    assert folder.path == "/movies"
    assert folder.free_space == 1_099_511_627_776


@pytest.mark.asyncio
async def test_queue_paging(backend, radarr):
    backend.add(
        "GET",
        "/radarr/api/v3/queue",
        json={
            "page": 2,
            "pageSize": 10,
            "totalRecords": 11,
            "records": [{"id": 5, "title": "Heat", "size": 100, "sizeleft": 25}],
        },
    )

    queue = await radarr.list_queue(page=2, page_size=10)

    assert queue.records[0].progress == 75.0
    query = backend.calls_to("/radarr/api/v3/queue")[0].query
    assert query["page"] == "2"
    assert query["pageSize"] == "10"


@pytest.mark.asyncio
async def test_radarr_commands(backend, radarr):
    backend.add("POST", "/radarr/api/v3/command", json={"id": 9, "name": "MoviesSearch"})

    command = await radarr.search_movie([1, 2])
    await radarr.refresh_movie()

    assert command.id == 9
    first, second = (c.json() for c in backend.calls_to("/radarr/api/v3/command"))
    assert first == {"name": "MoviesSearch", "movieIds": [1, 2]}
    assert second == {"name": "RefreshMovie"}


@pytest.mark.asyncio
async def test_sonarr_season_search(backend, sonarr):
    backend.add("POST", "/sonarr/api/v3/command", json={"id": 3, "name": "SeasonSearch"})

    await sonarr.search_season(42, 3)

    body = backend.calls_to("/sonarr/api/v3/command")[0].json()
    assert body == {"name": "SeasonSearch", "seriesId": 42, "seasonNumber": 3}


@pytest.mark.asyncio
async def test_sonarr_lookup_uses_series_resource(backend, sonarr):
    backend.add(
        "GET",
        "/sonarr/api/v3/series/lookup",
        json=[{"title": "Lost", "tvdbId": 73739, "seasons": [{"seasonNumber": 1}]}],
    )

    (hit,) = await sonarr.lookup_media("lost")

    assert hit.tvdb_id == 73739
    assert hit.seasons[0].season_number == 1


@pytest.mark.asyncio
async def test_sonarr_calendar(backend, sonarr):
    backend.add(
        "GET",
        "/sonarr/api/v3/calendar",
        json=[{"id": 1, "seriesId": 42, "seasonNumber": 1, "episodeNumber": 2}],
    )

    episodes = await sonarr.calendar(date(2024, 1, 1), date(2024, 1, 7))

    assert episodes[0].episode_number == 2
    assert backend.calls_to("/sonarr/api/v3/calendar")[0].query == {
        "start": "2024-01-01",
        "end": "2024-01-07",
        "includeSeries": "true",
    }
