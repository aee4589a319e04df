"""
Jellyfin Webhook plugin receiver

Turns the plugin's notifications into host events so a running
UserDataSyncManager reacts to playback, toggles, ratings and new items.
"""

import json
import logging
from dataclasses import replace
from typing import Any, Mapping
from urllib.parse import parse_qs

from fastapi import APIRouter, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from .base_client import ServiceError
from .host import (
    HostItem,
    ItemChangeEvent,
    ItemUpdateType,
    LibraryManager,
    UserDataManager,
    UserDataSaveEvent,
    UserDataSaveReason,
    UserItemData,
)
from .shoko import parse_datetime

logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/webhook/jellyfin"

PLAYBACK_REASONS = {
    "playbackstart": UserDataSaveReason.PLAYBACK_START,
    "playbackprogress": UserDataSaveReason.PLAYBACK_PROGRESS,
}

# Playback notifications already cover the playback save reasons
USER_DATA_SAVED_REASONS = {
    "toggleplayed": UserDataSaveReason.TOGGLE_PLAYED,
    "updateuserrating": UserDataSaveReason.UPDATE_USER_RATING,
}


def _grab(payload: Mapping[str, Any], keys: list[str]) -> Any:
    for key in keys:
        if payload.get(key) not in (None, ""):
            return payload[key]
    return None


def _as_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if value is None:
        return None
    text = str(value).strip().lower()
    if text in ("1", "true", "yes"):
        return True
    if text in ("0", "false", "no"):
        return False
    return None


def _user_data_from_payload(
    host: UserDataManager, user_id: str, item: HostItem, payload: Mapping[str, Any]
) -> UserItemData:
    """Current user data of the host with the notification's values on top"""
    current = host.get_user_data(user_id, item)
    user_data = replace(current) if current else UserItemData(user_id=user_id)

    position = _grab(payload, ["PlaybackPositionTicks", "PositionTicks"])
    if position is not None:
        user_data.playback_position_ticks = int(position)
    played = _as_bool(_grab(payload, ["Played"]))
    if played is not None:
        user_data.played = played
    play_count = _grab(payload, ["PlayCount"])
    if play_count is not None:
        user_data.play_count = int(play_count)
    favorite = _as_bool(_grab(payload, ["IsFavorite", "Favorite"]))
    if favorite is not None:
        user_data.is_favorite = favorite
    rating = _grab(payload, ["Rating"])
    if rating is not None:
        user_data.rating = float(rating)
    last_played = _grab(payload, ["LastPlayedDate"])
    if last_played:
        user_data.last_played_date = parse_datetime(last_played)
    return user_data


def _save_reason(event: str, payload: Mapping[str, Any]) -> UserDataSaveReason | None:
    if event in PLAYBACK_REASONS:
        return PLAYBACK_REASONS[event]
    if event == "playbackstop":
        if _as_bool(_grab(payload, ["PlayedToCompletion"])):
            return UserDataSaveReason.PLAYBACK_FINISHED
        return UserDataSaveReason.PLAYBACK_PROGRESS
    if event == "userdatasaved":
        reason = str(_grab(payload, ["SaveReason"]) or "").strip().lower()
        return USER_DATA_SAVED_REASONS.get(reason)
    return None


def process_webhook(host, payload: Mapping[str, Any]) -> dict:
    """
    Emit the host event matching a webhook notification

    Args:
        host: Media server implementing LibraryManager and UserDataManager
        payload: Decoded notification

    Returns:
        Small status dictionary for the response body
    """
    if not payload:
        logger.warning("Empty webhook payload")
        return {"ok": True, "ignored": True}

    event = str(_grab(payload, ["NotificationType", "Event"]) or "").strip()
    event_key = event.lower()
    item_id = _grab(payload, ["ItemId"]) or (payload.get("Item") or {}).get("Id")
    if not item_id:
        logger.debug(f"Ignoring webhook {event or '?'} without an item")
        return {"ok": True, "ignored": True}

    if event_key == "itemadded":
        return _item_added(host, item_id, payload)

    reason = _save_reason(event_key, payload)
    if reason is None:
        logger.debug(f"Ignoring webhook {event or '?'} (Item={item_id})")
        return {"ok": True, "ignored": True}

    user_id = _grab(payload, ["UserId"]) or (payload.get("User") or {}).get("Id")
    if not user_id:
        logger.debug(f"Ignoring webhook {event} without a user (Item={item_id})")
        return {"ok": True, "ignored": True}

    item = host.get_item(item_id)
    if item is None:
        logger.warning(f"Unable to find item {item_id} for webhook {event}")
        return {"ok": True, "ignored": True}

    user_data = _user_data_from_payload(host, user_id, item, payload)
    if reason == UserDataSaveReason.PLAYBACK_FINISHED:
        # A completed playback is saved as played from the start
        user_data.played = True
        user_data.playback_position_ticks = 0
    logger.debug(f"Webhook {event} for {item.name} ({reason.value})")
    host.user_data_saved.emit(
        UserDataSaveEvent(
            user_id=user_id, item=item, user_data=user_data, save_reason=reason
        )
    )
    return {"ok": True, "event": reason.value}


def _item_added(host: LibraryManager, item_id: str, payload: Mapping[str, Any]) -> dict:
    item = host.get_item(item_id)
    if item is None:
        logger.warning(f"Unable to find added item {item_id}")
        return {"ok": True, "ignored": True}

    parent_id = _grab(payload, ["SeriesId", "ParentId"]) or getattr(item, "series_id", None)
    parent = host.get_item(parent_id) if parent_id else None
    logger.debug(f"Webhook ItemAdded for {item.name} (Item={item_id})")
    host.item_added.emit(
        ItemChangeEvent(
            item=item, parent=parent, update_reason=ItemUpdateType.METADATA_IMPORT
        )
    )
    return {"ok": True, "event": "ItemAdded"}


def _decode(raw: bytes, content_type: str) -> dict:
    text = raw.decode("utf-8", errors="replace")
    if "application/x-www-form-urlencoded" in content_type:
        blob = (parse_qs(text).get("payload") or [""])[0]
        return json.loads(blob) if blob else {}
    return json.loads(text) if text else {}


def create_app(host) -> FastAPI:
    """Build the web application receiving the Jellyfin notifications"""
    router = APIRouter()

    @router.post(WEBHOOK_PATH)
    async def jellyfin_webhook(request: Request) -> JSONResponse:
        raw = await request.body()
        content_type = (request.headers.get("content-type") or "").lower()
        try:
            payload = _decode(raw, content_type)
        except ValueError as e:
            logger.error(f"Unable to parse webhook payload: {e}")
            return JSONResponse({"ok": False, "error": "invalid payload"}, status_code=400)
        if not isinstance(payload, dict):
            return JSONResponse({"ok": False, "error": "invalid payload"}, status_code=400)

        try:
            result = await run_in_threadpool(process_webhook, host, payload)
        except ServiceError as e:
            logger.error(f"Unable to handle webhook: {e}")
            return JSONResponse({"ok": False, "error": str(e)}, status_code=502)
        return JSONResponse(result)

    app = FastAPI(title="ShokarrFin")
    app.include_router(router)
    return app
