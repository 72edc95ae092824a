import pytest
from pydantic import ValidationError

from mediahub.exceptions import AuthRejectedError, NetworkUnreachableError
from mediahub.models.arr import MovieLookup, QueueRecord, RootFolder
from mediahub.models.instance import ConnectionTestResult, InstanceGroup, ServiceInstance, ServiceType
from mediahub.models.overseerr import (
    MediaRequest,
    MediaStatus,
    MediaType,
    RequestStatus,
    SearchResult,
    SearchResults,
)
from mediahub.models.qbittorrent import Torrent


def test_search_result_tolerates_missing_optional_fields():
    result = SearchResult.model_validate({"id": 597})

    assert result.media_info is None
    assert result.display_title == "Unknown"
    assert result.display_year == ""


def test_malformed_optional_field_degrades_to_default():
    result = SearchResult.model_validate(
        {"id": 597, "mediaType": "movie", "voteAverage": "n/a", "title": "Titanic"}
    )

    assert result.vote_average is None
    assert result.title == "Titanic"


def test_missing_critical_field_fails():
    with pytest.raises(ValidationError):
        SearchResult.model_validate({"title": "Titanic"})


def test_unknown_enum_values_map_to_unknown():
    result = SearchResult.model_validate(
        {"id": 1, "mediaType": "collection", "mediaInfo": {"status": 42}}
    )

    assert result.media_type is MediaType.UNKNOWN
    assert result.media_info.status is MediaStatus.UNKNOWN
    assert RequestStatus(99) is RequestStatus.UNKNOWN


def test_undecodable_list_items_are_dropped():
    results = SearchResults.model_validate(
        {
            "page": 1,
            "totalResults": 3,
            "results": [
                {"id": 1, "mediaType": "movie", "title": "Titanic"},
                {"mediaType": "movie", "title": "No id"},
                {"id": 2, "mediaType": "tv", "name": "Titans"},
            ],
        }
    )

    assert [r.id for r in results.results] == [1, 2]
    assert results.total_results == 3


def test_resolved_media_type_falls_back_on_title_field():
    assert SearchResult(id=1, title="Heat").resolved_media_type is MediaType.MOVIE
    assert SearchResult(id=2, name="Lost").resolved_media_type is MediaType.TV
    assert (
        SearchResult(id=3, media_type=MediaType.PERSON, name="Kate").resolved_media_type
        is MediaType.PERSON
    )


def test_media_request_decodes_4k_alias():
    request = MediaRequest.model_validate(
        {"id": 7, "status": 2, "type": "movie", "is4k": True, "media": {"status4k": 5}}
    )

    assert request.is_4k
    assert request.is_approved
    assert request.media.status_4k is MediaStatus.AVAILABLE


def test_media_info_availability_flags():
    available = SearchResult.model_validate({"id": 1, "mediaInfo": {"status": 5}})
    processing = SearchResult.model_validate({"id": 2, "mediaInfo": {"status": 3}})

    assert available.media_info.is_available
    assert processing.media_info.is_requested
    assert not processing.media_info.is_available


def test_lookup_stable_id_prefers_library_id():
    new = MovieLookup.model_validate({"title": "Heat", "tmdbId": 949})
    owned = MovieLookup.model_validate({"id": 12, "title": "Heat", "tmdbId": 949})

    assert new.stable_id == 949
    assert not new.in_library
    assert owned.stable_id == 12
    assert owned.in_library


def test_sizes_are_integers():
    folder = RootFolder.model_validate(
        {"id": 1, "path": "/movies", "freeSpace": 5_000_000_000_000}
    )

    assert folder.free_space == 5_000_000_000_000


def test_queue_progress():
    record = QueueRecord.model_validate({"id": 1, "size": 200, "sizeleft": 50})

    assert record.progress == 75.0
    assert QueueRecord(id=2).progress == 0.0


@pytest.mark.parametrize(
    "state, paused, can_resume",
    [
        ("pausedDL", True, True),
        ("stoppedUP", True, True),
        ("downloading", False, False),
        ("error", False, True),
    ],
)
def test_torrent_state_helpers(state, paused, can_resume):
    torrent = Torrent(hash="abc", state=state)

    assert torrent.is_paused is paused
    assert torrent.can_resume is can_resume


def test_instance_base_url_is_normalized():
    instance = ServiceInstance(
        name=" Radarr ",
        base_url="http://nas:7878/ ",
        service_type=ServiceType.RADARR,
    )

    assert instance.name == "Radarr"
    assert instance.base_url == "http://nas:7878"
    assert instance.display_url == "nas:7878"


def test_instance_name_is_required():
    with pytest.raises(ValidationError):
        ServiceInstance(name="  ", base_url="http://x", service_type=ServiceType.RADARR)


def test_group_color_falls_back_to_blue():
    assert InstanceGroup(name="Home", color="chartreuse").color == "blue"
    assert InstanceGroup(name="Home", color="green").color == "green"


def test_only_qbittorrent_uses_username_and_password():
    assert not ServiceType.QBITTORRENT.uses_api_key
    assert all(
        t.uses_api_key for t in ServiceType if t is not ServiceType.QBITTORRENT
    )


def test_connection_result_from_http_error():
    result = ConnectionTestResult.from_error(
        AuthRejectedError(401, "Authentication failed (401)")
    )

    assert not result.success
    assert result.http_status_code == 401
    assert "API key" in result.recovery_suggestion


def test_connection_result_from_network_error():
    result = ConnectionTestResult.from_error(NetworkUnreachableError("refused"))

    assert result.http_status_code is None
    assert "VPN" in result.recovery_suggestion
