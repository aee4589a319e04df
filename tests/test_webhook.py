from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from shokarrfin.base_client import ServiceError
from shokarrfin.host import HostSeries, HostVideo, ItemUpdateType, UserDataSaveReason, UserItemData
from shokarrfin.lookup import EPISODE_PROVIDER, FILE_PROVIDER
from shokarrfin.sync import UserDataSyncManager
from shokarrfin.webhook import WEBHOOK_PATH, create_app, process_webhook


@pytest.fixture()
def library(host):
    host.add(HostSeries(id="jf-series", name="Attack on Titan"))
    host.add(
        HostVideo(
            id="v1",
            name="Episode 1",
            provider_ids={FILE_PROVIDER: "f1", EPISODE_PROVIDER: "e1"},
            series_id="jf-series",
        )
    )
    return host


@pytest.fixture()
def events(library):
    saved, added = [], []
    library.user_data_saved.subscribe(saved.append)
    library.item_added.subscribe(added.append)
    return saved, added


@pytest.fixture()
def client(library) -> TestClient:
    return TestClient(create_app(library))


def test_playback_progress_emits_user_data_saved(library, events) -> None:
    saved, _ = events

    result = process_webhook(
        library,
        {"NotificationType": "PlaybackProgress", "ItemId": "v1", "UserId": "alice", "PlaybackPositionTicks": 600_000_000},
    )

    assert result == {"ok": True, "event": "PlaybackProgress"}
    assert len(saved) == 1
    assert saved[0].user_id == "alice"
    assert saved[0].item.id == "v1"
    assert saved[0].save_reason == UserDataSaveReason.PLAYBACK_PROGRESS
    assert saved[0].user_data.playback_position_ticks == 600_000_000


@pytest.mark.parametrize(
    "completed, reason",
    [(True, UserDataSaveReason.PLAYBACK_FINISHED), (False, UserDataSaveReason.PLAYBACK_PROGRESS)],
)
def test_playback_stop_depends_on_completion(library, events, completed, reason) -> None:
    saved, _ = events

    process_webhook(
        library,
        {"NotificationType": "PlaybackStop", "ItemId": "v1", "UserId": "alice", "PlayedToCompletion": completed},
    )

    assert saved[0].save_reason == reason
    assert saved[0].user_data.played is completed


def test_user_data_saved_keeps_host_state_and_applies_payload(library, events) -> None:
    saved, _ = events
    stored = UserItemData(user_id="alice", play_count=3, rating=7.0)
    library.user_data[("alice", "v1")] = stored

    process_webhook(
        library,
        {"NotificationType": "UserDataSaved", "SaveReason": "TogglePlayed", "ItemId": "v1", "UserId": "alice", "Played": "true"},
    )

    event = saved[0]
    assert event.save_reason == UserDataSaveReason.TOGGLE_PLAYED
    assert event.user_data.played is True
    assert event.user_data.play_count == 3
    assert event.user_data.rating == 7.0
    # The stored user data is not modified in place
    assert stored.played is False


@pytest.mark.parametrize("save_reason", ["PlaybackProgress", "Import", "UpdateUserData"])
def test_other_user_data_saved_reasons_are_ignored(library, events, save_reason) -> None:
    saved, _ = events

    result = process_webhook(
        library,
        {"NotificationType": "UserDataSaved", "SaveReason": save_reason, "ItemId": "v1", "UserId": "alice"},
    )

    assert result["ignored"] is True
    assert saved == []


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"NotificationType": "PlaybackStart", "UserId": "alice"},
        {"NotificationType": "PlaybackStart", "ItemId": "v1"},
        {"NotificationType": "PlaybackStart", "ItemId": "missing", "UserId": "alice"},
        {"NotificationType": "ItemDeleted", "ItemId": "v1"},
    ],
)
def test_incomplete_notifications_are_ignored(library, events, payload) -> None:
    saved, added = events

    assert process_webhook(library, payload)["ignored"] is True
    assert saved == [] and added == []


def test_item_added_emits_import_with_parent_series(library, events) -> None:
    _, added = events

    result = process_webhook(library, {"NotificationType": "ItemAdded", "ItemId": "v1", "SeriesId": "jf-series"})

    assert result == {"ok": True, "event": "ItemAdded"}
    assert added[0].item.id == "v1"
    assert added[0].parent.id == "jf-series"
    assert added[0].update_reason == ItemUpdateType.METADATA_IMPORT


def test_endpoint_accepts_json(client, events) -> None:
    saved, _ = events

    r = client.post(
        WEBHOOK_PATH,
        json={"NotificationType": "PlaybackStart", "ItemId": "v1", "UserId": "alice"},
    )

    assert r.status_code == 200
    assert r.json() == {"ok": True, "event": "PlaybackStart"}
    assert saved[0].save_reason == UserDataSaveReason.PLAYBACK_START


def test_endpoint_accepts_form_encoded_payload(client, events) -> None:
    saved, _ = events
    body = json.dumps({"NotificationType": "PlaybackStart", "ItemId": "v1", "UserId": "alice"})

    r = client.post(WEBHOOK_PATH, data={"payload": body})

    assert r.status_code == 200
    assert len(saved) == 1


def test_endpoint_rejects_invalid_payload(client) -> None:
    r = client.post(WEBHOOK_PATH, content=b"not json", headers={"content-type": "application/json"})
    assert r.status_code == 400


def test_endpoint_reports_host_failures(library, client) -> None:
    def unreachable(item_id):
        raise ServiceError("Jellyfin is down")

    library.get_item = unreachable

    r = client.post(WEBHOOK_PATH, json={"NotificationType": "PlaybackStart", "ItemId": "v1", "UserId": "alice"})

    assert r.status_code == 502
    assert r.json()["ok"] is False


def test_notifications_reach_the_sync_manager(library, shoko, config, client) -> None:
    with UserDataSyncManager(library, library, shoko, config) as manager:
        r = client.post(
            WEBHOOK_PATH,
            json={"NotificationType": "PlaybackStop", "ItemId": "v1", "UserId": "alice", "PlayedToCompletion": True},
        )
        assert r.status_code == 200
        assert manager.wait_for_pending(5)

    assert shoko.scrobbles == [
        {"file_id": "f1", "token": "alice-token", "position_ticks": 0, "watched": True}
    ]
