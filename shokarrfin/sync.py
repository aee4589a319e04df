"""
User data synchronization between the media server and Shoko
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Flag
from typing import Callable

from .base_client import ServiceError
from .config import Config, UserConfiguration
from .host import (
    HostItem,
    HostSeason,
    HostSeries,
    HostVideo,
    ItemChangeEvent,
    ItemUpdateType,
    LibraryManager,
    UserDataManager,
    UserDataSaveEvent,
    UserDataSaveReason,
    UserItemData,
)
from .lookup import IdLookup
from .models import RemoteUserData
from .shoko import TICKS_PER_MILLISECOND, ShokoClient

logger = logging.getLogger(__name__)

_IMPORT_REASONS = ItemUpdateType.METADATA_IMPORT | ItemUpdateType.METADATA_DOWNLOAD
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class SyncDirection(Flag):
    NONE = 0
    IMPORT = 1
    EXPORT = 2
    BOTH = IMPORT | EXPORT


@dataclass(frozen=True)
class VideoTarget:
    item: HostVideo
    episode_id: str
    file_id: str | None = None


@dataclass(frozen=True)
class SeasonTarget:
    item: HostSeason
    series_id: str


@dataclass(frozen=True)
class SeriesTarget:
    item: HostSeries
    series_id: str


SyncTarget = VideoTarget | SeasonTarget | SeriesTarget


def _as_utc(value: datetime | None) -> datetime:
    if value is None:
        return _EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _same_watch_state(local: UserItemData, remote: RemoteUserData) -> bool:
    # Shoko keeps positions in milliseconds
    return (
        local.played == remote.played
        and local.playback_position_ticks // TICKS_PER_MILLISECOND
        == remote.position_ticks // TICKS_PER_MILLISECOND
    )


class UserDataSyncManager:
    """
    Reacts to media server events and keeps watch state in sync with Shoko

    Exports triggered by events run on a worker pool and are never awaited by
    the event handler. Use as a context manager (or call start/close) so the
    event subscriptions are always released.
    """

    def __init__(
        self,
        library: LibraryManager,
        user_data_manager: UserDataManager,
        client: ShokoClient,
        config: Config,
        lookup: IdLookup | None = None,
        executor: ThreadPoolExecutor | None = None,
    ):
        self.library = library
        self.user_data_manager = user_data_manager
        self.client = client
        self.config = config
        self.lookup = lookup or IdLookup(library)
        # An injected executor stays owned by the caller
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max(1, config.sync_workers),
            thread_name_prefix="shokarrfin-sync",
        )
        self._pending: set[Future] = set()
        self._pending_lock = threading.Lock()
        self._subscribed = False
        self._handlers = {
            VideoTarget: self._sync_video,
            SeasonTarget: self._sync_season,
            SeriesTarget: self._sync_series,
        }

    # Lifecycle

    def start(self) -> "UserDataSyncManager":
        """Subscribe to the media server events"""
        if not self._subscribed:
            self.user_data_manager.user_data_saved.subscribe(self.on_user_data_saved)
            self.library.item_added.subscribe(self.on_item_added_or_updated)
            self.library.item_updated.subscribe(self.on_item_added_or_updated)
            self._subscribed = True
        return self

    def close(self) -> None:
        """Unsubscribe from the events and let the pending exports finish"""
        if self._subscribed:
            self.user_data_manager.user_data_saved.unsubscribe(self.on_user_data_saved)
            self.library.item_added.unsubscribe(self.on_item_added_or_updated)
            self.library.item_updated.unsubscribe(self.on_item_added_or_updated)
            self._subscribed = False
        if self._owns_executor:
            self._executor.shutdown(wait=True)
        else:
            self.wait_for_pending()

    def __enter__(self) -> "UserDataSyncManager":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def wait_for_pending(self, timeout: float | None = None) -> bool:
        """Block until the dispatched exports are done. Returns False on timeout."""
        with self._pending_lock:
            pending = set(self._pending)
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    # Export / scrobble

    def on_user_data_saved(self, event: UserDataSaveEvent) -> None:
        try:
            self._handle_user_data_saved(event)
        except Exception as e:
            logger.exception(f"Error while handling saved user data: {e}")

    def _handle_user_data_saved(self, event: UserDataSaveEvent) -> None:
        if event is None or event.item is None or not event.user_id or event.user_data is None:
            return

        if event.save_reason == UserDataSaveReason.UPDATE_USER_RATING:
            self._on_user_rating_saved(event)
            return

        user_config = self.config.get_user(event.user_id)
        if not isinstance(event.item, HostVideo) or user_config is None:
            return
        file_id = self.lookup.get_file_id(event.item)
        episode_id = self.lookup.get_episode_id(event.item)
        if not (file_id and episode_id):
            return

        user_data = event.user_data
        reason = event.save_reason
        if reason in (UserDataSaveReason.PLAYBACK_START, UserDataSaveReason.PLAYBACK_PROGRESS):
            if not user_config.sync_user_data_under_playback:
                return
            logger.debug(f"Scrobbled during playback. (File={file_id})")
            self._dispatch(
                f"scrobble file {file_id}",
                self.client.scrobble_file,
                file_id,
                user_config.token,
                position_ticks=user_data.playback_position_ticks,
            )
        elif reason == UserDataSaveReason.PLAYBACK_FINISHED:
            if not user_config.sync_user_data_after_playback:
                return
            logger.debug(f"Scrobbled after playback. (File={file_id})")
            self._dispatch(
                f"scrobble file {file_id}",
                self.client.scrobble_file,
                file_id,
                user_config.token,
                position_ticks=user_data.playback_position_ticks,
                watched=user_data.played,
            )
        elif reason == UserDataSaveReason.TOGGLE_PLAYED:
            logger.debug(f"Scrobbled when toggled. (File={file_id})")
            if user_data.playback_position_ticks == 0:
                self._dispatch(
                    f"mark file {file_id}",
                    self.client.scrobble_file,
                    file_id,
                    user_config.token,
                    watched=user_data.played,
                )
            else:
                self._dispatch(
                    f"scrobble file {file_id}",
                    self.client.scrobble_file,
                    file_id,
                    user_config.token,
                    position_ticks=user_data.playback_position_ticks,
                )

    def _on_user_rating_saved(self, event: UserDataSaveEvent) -> None:
        """Updates to the favorite state and/or the user rating"""
        user_config = self.config.get_user(event.user_id)
        if user_config is None:
            return
        target = self._make_target(event.item, require_file=False)
        if target is None:
            return
        self._dispatch(
            f"export rating of {event.item.name}",
            self.sync_item,
            target,
            user_config,
            event.user_data,
            SyncDirection.EXPORT,
        )

    # Import / reconciliation

    def on_item_added_or_updated(self, event: ItemChangeEvent) -> None:
        try:
            self._handle_item_added_or_updated(event)
        except Exception as e:
            logger.exception(f"Error while handling library change: {e}")

    def _handle_item_added_or_updated(self, event: ItemChangeEvent) -> None:
        if event is None or event.item is None or event.parent is None:
            return
        if not event.update_reason & _IMPORT_REASONS:
            return

        target = self._make_target(event.item, require_file=True)
        if target is None:
            return

        for user_config in self.config.enabled_users:
            if not user_config.sync_user_data_on_import:
                continue
            self._dispatch(
                f"sync {event.item.name}",
                self.sync_item,
                target,
                user_config,
                None,
                SyncDirection.BOTH,
            )

    def scan_and_sync(
        self,
        progress: Callable[[float], None] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> bool:
        """
        Reconcile every video of the library for every enabled user

        Args:
            progress: Called with the completion percentage (0-100)
            cancel_event: Checked between videos; when set the scan stops

        Returns:
            True when the scan ran to completion, False when cancelled
        """
        report = progress or (lambda percent: None)
        enabled_users = self.config.enabled_users
        if not enabled_users:
            report(100.0)
            return True

        videos = [v for v in self.library.get_video_items() if not v.is_virtual]
        num_complete = 0
        num_total = len(videos) * len(enabled_users)
        logger.info(
            f"Synchronizing {len(videos)} videos for {len(enabled_users)} users"
        )

        for video in videos:
            if cancel_event is not None and cancel_event.is_set():
                logger.info(
                    f"User data scan cancelled after {num_complete}/{num_total} items"
                )
                return False

            target = self._make_target(video, require_file=True)
            if target is None:
                continue

            for user_config in enabled_users:
                self._run_safely(
                    f"sync {video.name}",
                    self.sync_item,
                    target,
                    user_config,
                    None,
                    SyncDirection.BOTH,
                )
                num_complete += 1
                report(num_complete / num_total * 100)

        report(100.0)
        return True

    def sync_item(
        self,
        target: SyncTarget,
        user_config: UserConfiguration,
        user_data: UserItemData | None,
        direction: SyncDirection,
    ) -> None:
        """Apply a sync action in the given direction for one item and user"""
        if user_data is None:
            user_data = self.user_data_manager.get_user_data(user_config.user_id, target.item)
        # Start from empty user data if the user never touched the item
        if user_data is None:
            user_data = UserItemData(user_id=user_config.user_id, last_played_date=None)
        self._handlers[type(target)](target, user_config, user_data, direction)

    def _sync_video(
        self,
        target: VideoTarget,
        user_config: UserConfiguration,
        user_data: UserItemData,
        direction: SyncDirection,
    ) -> None:
        if direction == SyncDirection.EXPORT:
            if user_data.rating is not None:
                logger.debug(f"Exporting rating of {target.item.name}. (Episode={target.episode_id})")
                self.client.vote_episode(target.episode_id, user_data.rating, user_config.token)
            return

        if not target.file_id:
            return

        remote = self.client.get_file_user_data(target.file_id, user_config.token)
        authority = self._pick_authority(direction, user_data, remote)
        if authority == SyncDirection.IMPORT:
            self._import_video(target, user_config, user_data, remote)
        elif authority == SyncDirection.EXPORT:
            self._export_video(target, user_config, user_data)
        else:
            logger.debug(
                f"User data already in sync for {target.item.name}. "
                f"(File={target.file_id},Episode={target.episode_id})"
            )

    def _pick_authority(
        self,
        direction: SyncDirection,
        local: UserItemData,
        remote: RemoteUserData | None,
    ) -> SyncDirection:
        """Decide which side's watch state gets written to the other side"""
        if remote is not None and _same_watch_state(local, remote):
            return SyncDirection.NONE
        if remote is None:
            has_local_state = local.played or local.playback_position_ticks > 0
            if direction & SyncDirection.EXPORT and has_local_state:
                return SyncDirection.EXPORT
            return SyncDirection.NONE

        if direction == SyncDirection.IMPORT:
            return SyncDirection.IMPORT
        if direction == SyncDirection.EXPORT:
            return SyncDirection.EXPORT

        policy = self.config.sync_conflict_policy
        if policy == "local":
            return SyncDirection.EXPORT
        if policy == "remote":
            return SyncDirection.IMPORT

        local_updated = _as_utc(local.last_played_date)
        remote_updated = _as_utc(remote.last_updated or remote.last_played)
        if remote_updated > local_updated:
            return SyncDirection.IMPORT
        if local_updated > remote_updated:
            return SyncDirection.EXPORT
        return SyncDirection.NONE

    def _import_video(
        self,
        target: VideoTarget,
        user_config: UserConfiguration,
        user_data: UserItemData,
        remote: RemoteUserData,
    ) -> None:
        logger.debug(
            f"Importing user data for video {target.item.name}. "
            f"(File={target.file_id},Episode={target.episode_id})"
        )
        updated = replace(
            user_data,
            played=remote.played,
            playback_position_ticks=remote.position_ticks,
            play_count=max(user_data.play_count, remote.play_count),
            last_played_date=remote.last_played or remote.last_updated,
        )
        self.user_data_manager.save_user_data(
            user_config.user_id, target.item, updated, UserDataSaveReason.IMPORT
        )

    def _export_video(
        self,
        target: VideoTarget,
        user_config: UserConfiguration,
        user_data: UserItemData,
    ) -> None:
        logger.debug(
            f"Exporting user data for video {target.item.name}. "
            f"(File={target.file_id},Episode={target.episode_id})"
        )
        if user_data.playback_position_ticks == 0:
            self.client.scrobble_file(
                target.file_id, user_config.token, watched=user_data.played
            )
        else:
            self.client.scrobble_file(
                target.file_id,
                user_config.token,
                position_ticks=user_data.playback_position_ticks,
                watched=user_data.played,
            )

    def _sync_season(
        self,
        target: SeasonTarget,
        user_config: UserConfiguration,
        user_data: UserItemData,
        direction: SyncDirection,
    ) -> None:
        logger.debug(
            f"Sync user rating for season {target.item.index_number} in series "
            f"{target.item.series_name}. (Series={target.series_id})"
        )
        self._sync_rating(target.item, target.series_id, user_config, user_data, direction)

    def _sync_series(
        self,
        target: SeriesTarget,
        user_config: UserConfiguration,
        user_data: UserItemData,
        direction: SyncDirection,
    ) -> None:
        logger.debug(
            f"Sync user rating for series {target.item.name}. (Series={target.series_id})"
        )
        self._sync_rating(target.item, target.series_id, user_config, user_data, direction)

    def _sync_rating(
        self,
        item: HostItem,
        series_id: str,
        user_config: UserConfiguration,
        user_data: UserItemData,
        direction: SyncDirection,
    ) -> None:
        # The local rating wins when set, Shoko only fills in missing ratings
        if direction & SyncDirection.EXPORT and user_data.rating is not None:
            self.client.vote_series(series_id, user_data.rating, user_config.token)
            return
        if not direction & SyncDirection.IMPORT:
            return

        remote_rating = self.client.get_series_user_rating(series_id, user_config.token)
        if remote_rating is None or remote_rating == user_data.rating:
            return
        self.user_data_manager.save_user_data(
            user_config.user_id,
            item,
            replace(user_data, rating=remote_rating),
            UserDataSaveReason.IMPORT,
        )

    # Helpers

    def _make_target(self, item: HostItem, require_file: bool) -> SyncTarget | None:
        if isinstance(item, HostVideo):
            episode_id = self.lookup.get_episode_id(item)
            file_id = self.lookup.get_file_id(item)
            if not episode_id or (require_file and not file_id):
                return None
            return VideoTarget(item, episode_id, file_id)
        if isinstance(item, HostSeason):
            series_id = self.lookup.get_series_id(item)
            return SeasonTarget(item, series_id) if series_id else None
        if isinstance(item, HostSeries):
            series_id = self.lookup.get_series_id(item)
            return SeriesTarget(item, series_id) if series_id else None
        return None

    def _dispatch(self, description: str, func: Callable, *args, **kwargs) -> Future:
        """Run a call on the worker pool without waiting for it"""
        future = self._executor.submit(self._run_safely, description, func, *args, **kwargs)
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._discard_pending)
        return future

    def _discard_pending(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    @staticmethod
    def _run_safely(description: str, func: Callable, *args, **kwargs) -> None:
        try:
            func(*args, **kwargs)
        except ServiceError as e:
            logger.warning(f"Failed to {description}: {e}")
        except Exception as e:
            logger.exception(f"Unexpected error while trying to {description}: {e}")
