"""Project model: stage, sprites, sounds and layering order.

The project is the single owner of its stage and assets. Every mutating
method emits an event on :attr:`Project.events`; the unsynced-change
tracker and the local cache sync are plain subscribers to that stream.

Example:
    >>> project = Project()
    >>> project.add_sprite(Sprite("Cat"))
    >>> project.add_sprite(Sprite("Cat"))   # renamed to "Cat2"
    >>> project.zorder
    ['Cat', 'Cat2']
    >>> project.top_sprite_zorder("Cat")
    >>> project.zorder
    ['Cat2', 'Cat']
"""

import asyncio
import logging
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, TypeVar, Union

from ..core.events import Event, EventBus, EventType, Unsubscribe
from ..exceptions import NotFoundError, ProjectConfigError
from ..persistence.base import ArchiveCodec, Bundle, CloudStore, LocalCache, ProjectData
from .common.asset import Asset, ensure_valid_sound_name, ensure_valid_sprite_name
from .common.file import File, Files, from_config, join, to_config
from .disposable import Disposable
from .metadata import REVISION_FIELDS, IsPublic, Metadata, RevisionState
from .sound import Sound
from .sprite import Sprite
from .stage import Stage

logger = logging.getLogger(__name__)

PROJECT_CONFIG_FILE_NAME = "index.json"
PROJECT_CONFIG_FILE_PATH = join("assets", PROJECT_CONFIG_FILE_NAME)
DEFAULT_SYNC_DEBOUNCE_SECONDS = 1.0

ZorderTarget = Union[int, Callable[[int, int], int]]
A = TypeVar("A", bound=Asset)


def full_name(owner: str, name: str) -> str:
    """Globally unique identifier for a project."""
    return f"{owner}/{name}"


class Project(Disposable):
    """In-memory project document.

    Persistence adapters are injected; any left out are created from
    :func:`stagecraft.config.get_settings` on first use.
    """

    def __init__(
        self,
        cloud_store: Optional[CloudStore] = None,
        local_cache: Optional[LocalCache] = None,
        archive_codec: Optional[ArchiveCodec] = None,
        sync_debounce_seconds: float = DEFAULT_SYNC_DEBOUNCE_SECONDS,
    ) -> None:
        super().__init__()
        self.events = EventBus()

        self._id: Optional[str] = None
        self._owner: Optional[str] = None
        self._name: Optional[str] = None
        self._is_public: Optional[IsPublic] = None
        self._revision = RevisionState()

        self._stage = Stage()
        self._unwatch_stage = self._watch_stage(self._stage)
        self._sprites: List[Sprite] = []
        self._sounds: List[Sound] = []
        self._zorder: List[str] = []
        self._asset_watchers: Dict[int, Unsubscribe] = {}

        self._cloud_store = cloud_store
        self._local_cache = local_cache
        self._archive_codec = archive_codec
        self.sync_debounce_seconds = sync_debounce_seconds

        self._batch_depth = 0
        self._batch_dirty = False

        self.add_disposer(self._dispose_sprites)
        self.add_disposer(lambda: self._unwatch_stage())

    def __repr__(self) -> str:
        return (
            f"Project(owner={self._owner!r}, name={self._name!r}, "
            f"sprites={len(self._sprites)}, sounds={len(self._sounds)})"
        )

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def id(self) -> Optional[str]:
        return self._id

    @property
    def owner(self) -> Optional[str]:
        return self._owner

    @property
    def name(self) -> Optional[str]:
        return self._name

    @property
    def is_public(self) -> Optional[IsPublic]:
        return self._is_public

    @property
    def version(self) -> int:
        return self._revision.version

    @property
    def c_time(self) -> Optional[str]:
        return self._revision.c_time

    @property
    def u_time(self) -> Optional[str]:
        return self._revision.u_time

    @property
    def has_unsynced_changes(self) -> bool:
        return self._revision.has_unsynced_changes

    @has_unsynced_changes.setter
    def has_unsynced_changes(self, value: bool) -> None:
        if self._revision.has_unsynced_changes == value:
            return
        self._revision.has_unsynced_changes = value
        self._notify(EventType.METADATA_CHANGED, fields=["has_unsynced_changes"])

    @property
    def stage(self) -> Stage:
        return self._stage

    @property
    def sprites(self) -> List[Sprite]:
        """Sprites in insertion order (a copy)."""
        return list(self._sprites)

    @property
    def sounds(self) -> List[Sound]:
        return list(self._sounds)

    @property
    def zorder(self) -> List[str]:
        """Sprite names from bottom to top layer (a copy)."""
        return list(self._zorder)

    def get_sprite(self, name: str) -> Sprite:
        return self._find(self._sprites, name, "sprite")

    def get_sound(self, name: str) -> Sound:
        return self._find(self._sounds, name, "sound")

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    def _notify(self, event_type: EventType, **data: Any) -> None:
        if self._batch_depth:
            self._batch_dirty = True
            return
        self.events.emit(Event(event_type, source="project", data=data))

    @contextmanager
    def _batch(self) -> Iterator[None]:
        """Hold back notifications, then emit a single LOADED event."""
        self._batch_depth += 1
        try:
            yield
        finally:
            self._batch_depth -= 1
            if not self._batch_depth and self._batch_dirty:
                self._batch_dirty = False
                self._notify(EventType.LOADED)

    def _watch_stage(self, stage: Stage) -> Unsubscribe:
        def forward(event: Event) -> None:
            self._notify(EventType.CHANGED, source="stage", **event.data)

        return stage.events.subscribe(None, forward)

    def _watch_asset(self, asset: Asset) -> None:
        def forward(event: Event) -> None:
            if asset.project is self:
                self._notify(EventType.CHANGED, source=asset.kind, name=asset.name, change=event.event_type.name)

        self._asset_watchers[id(asset)] = asset.events.subscribe(None, forward)

    def _unwatch_asset(self, asset: Asset) -> None:
        unsubscribe = self._asset_watchers.pop(id(asset), None)
        if unsubscribe is not None:
            unsubscribe()

    def _set_zorder(self, zorder: List[str]) -> None:
        self._zorder = zorder
        self._notify(EventType.ZORDER_CHANGED, zorder=list(zorder))

    @staticmethod
    def _find(assets: Sequence[A], name: str, kind: str) -> A:
        for asset in assets:
            if asset.name == name:
                return asset
        raise NotFoundError(f"{kind} {name} not found", kind=kind, name=name)

    # ------------------------------------------------------------------
    # Sprites and zorder
    # ------------------------------------------------------------------

    def add_sprite(self, sprite: Sprite) -> None:
        """Add given sprite to project.

        Note: the sprite's name may be altered to avoid conflict. A sprite
        owned by another project is detached from it first.
        """
        owner = sprite.project
        if owner is not None:
            owner._detach_sprite(sprite)
        new_name = ensure_valid_sprite_name(sprite.name, self)
        sprite.set_project(self)
        sprite.set_name(new_name)
        self._sprites.append(sprite)
        if sprite.name not in self._zorder:
            self._zorder = [*self._zorder, sprite.name]

        # Keep zorder in step with renames, at the same position
        def on_rename(event: Event) -> None:
            if sprite.project is not self:
                return
            old_name, new_name = event.data["old_name"], event.data["new_name"]
            self._set_zorder([new_name if v == old_name else v for v in self._zorder])

        sprite.add_disposer(sprite.events.subscribe(EventType.RENAMED, on_rename))

        # Drop from zorder (and the sprite list) when disposed
        def on_dispose() -> None:
            if sprite.project is not self:
                return
            self._sprites = [s for s in self._sprites if s is not sprite]
            self._set_zorder([v for v in self._zorder if v != sprite.name])

        sprite.add_disposer(on_dispose)
        self._watch_asset(sprite)
        sprite.add_disposer(lambda: self._unwatch_asset(sprite))

        logger.debug(f"Added sprite {sprite.name}")
        self._notify(EventType.SPRITE_ADDED, name=sprite.name)

    def remove_sprite(self, name: str) -> None:
        """Remove and dispose the sprite called ``name``.

        Raises:
            NotFoundError: If no sprite has that name.
        """
        sprite = self.get_sprite(name)
        self._sprites.remove(sprite)
        sprite.dispose()
        logger.debug(f"Removed sprite {name}")
        self._notify(EventType.SPRITE_REMOVED, name=name)

    def _detach_sprite(self, sprite: Sprite) -> None:
        """Let go of ``sprite`` without disposing it, ahead of a move to
        another project."""
        if not any(s is sprite for s in self._sprites):
            return
        self._sprites = [s for s in self._sprites if s is not sprite]
        self._unwatch_asset(sprite)
        sprite.set_project(None)
        self._set_zorder([v for v in self._zorder if v != sprite.name])
        self._notify(EventType.SPRITE_REMOVED, name=sprite.name)

    def set_sprite_zorder_idx(self, name: str, new_idx: ZorderTarget) -> None:
        """Move ``name`` to a new zorder position.

        ``new_idx`` is an index, or a function of ``(current_index,
        current_length)`` returning one. The name is removed first and then
        inserted at that index in the shortened list.

        Raises:
            NotFoundError: If ``name`` is not in zorder.
        """
        try:
            idx = self._zorder.index(name)
        except ValueError:
            raise NotFoundError(f"sprite {name} not found in zorder", kind="sprite", name=name) from None
        new_idx_val = new_idx(idx, len(self._zorder)) if callable(new_idx) else new_idx
        new_zorder = [v for v in self._zorder if v != name]
        new_zorder.insert(new_idx_val, name)
        self._set_zorder(new_zorder)

    def up_sprite_zorder(self, name: str) -> None:
        self.set_sprite_zorder_idx(name, lambda i, length: min(i + 1, length - 1))

    def down_sprite_zorder(self, name: str) -> None:
        self.set_sprite_zorder_idx(name, lambda i, length: max(i - 1, 0))

    def top_sprite_zorder(self, name: str) -> None:
        self.set_sprite_zorder_idx(name, lambda i, length: length - 1)

    def bottom_sprite_zorder(self, name: str) -> None:
        self.set_sprite_zorder_idx(name, 0)

    # ------------------------------------------------------------------
    # Sounds
    # ------------------------------------------------------------------

    def add_sound(self, sound: Sound) -> None:
        """Add given sound to project.

        Note: the sound's name may be altered to avoid conflict. A sound
        owned by another project is detached from it first.
        """
        owner = sound.project
        if owner is not None:
            owner._detach_sound(sound)
        new_name = ensure_valid_sound_name(sound.name, self)
        sound.set_project(self)
        sound.set_name(new_name)
        self._sounds.append(sound)
        self._watch_asset(sound)
        logger.debug(f"Added sound {sound.name}")
        self._notify(EventType.SOUND_ADDED, name=sound.name)

    def remove_sound(self, name: str) -> None:
        """Detach the sound called ``name``. The sound is not disposed.

        Raises:
            NotFoundError: If no sound has that name.
        """
        sound = self.get_sound(name)
        self._sounds.remove(sound)
        self._unwatch_asset(sound)
        sound.set_project(None)
        logger.debug(f"Removed sound {name}")
        self._notify(EventType.SOUND_REMOVED, name=name)

    def _detach_sound(self, sound: Sound) -> None:
        if any(s is sound for s in self._sounds):
            self.remove_sound(sound.name)

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def apply_metadata(self, metadata: Metadata) -> None:
        """Assign every field of ``metadata`` that is not None."""
        provided = metadata.provided()
        if not provided:
            return
        for field_name, value in provided.items():
            if field_name in REVISION_FIELDS:
                setattr(self._revision, field_name, value)
            elif field_name == "is_public":
                self._is_public = IsPublic(value)
            else:
                setattr(self, f"_{field_name}", value)
        self._notify(EventType.METADATA_CHANGED, fields=sorted(provided))

    def set_public(self, is_public: IsPublic) -> None:
        self.apply_metadata(Metadata(is_public=is_public))

    # ------------------------------------------------------------------
    # Load / export
    # ------------------------------------------------------------------

    async def load(self, metadata: Metadata, files: Files) -> None:
        """Replace the whole project with ``metadata`` and ``files``.

        Raises:
            ProjectConfigError: If the config document is malformed.
        """
        config_file = files.get(PROJECT_CONFIG_FILE_PATH)
        config: Dict[str, Any] = {}
        if config_file is not None:
            config.update(to_config(config_file))
        zorder = config.pop("zorder", None)
        if zorder is not None and (
            not isinstance(zorder, list) or not all(isinstance(v, str) for v in zorder)
        ):
            raise ProjectConfigError("zorder must be a list of sprite names", path=PROJECT_CONFIG_FILE_PATH)

        stage, sounds, sprites = await asyncio.gather(
            Stage.load(config, files),
            Sound.load_all(files),
            Sprite.load_all(files),
        )

        with self._batch():
            self.apply_metadata(metadata)
            self._replace_stage(stage)
            self._zorder = list(zorder or [])
            self._release_assets()
            for sprite in sprites:
                self.add_sprite(sprite)
            for sound in sounds:
                self.add_sound(sound)
            self._reconcile_zorder()

        logger.debug(f"Loaded project {self._name} ({len(sprites)} sprites, {len(sounds)} sounds)")

    def _replace_stage(self, stage: Stage) -> None:
        self._unwatch_stage()
        self._stage = stage
        self._unwatch_stage = self._watch_stage(stage)
        self._notify(EventType.STAGE_REPLACED)

    def _release_assets(self) -> None:
        """Detach everything currently owned, ahead of a reload."""
        old_sprites, self._sprites = self._sprites, []
        for sprite in old_sprites:
            sprite.set_project(None)
            sprite.dispose()
        old_sounds, self._sounds = self._sounds, []
        for sound in old_sounds:
            self._unwatch_asset(sound)
            sound.set_project(None)

    def _reconcile_zorder(self) -> None:
        # A loaded zorder may hold stale or duplicate names
        names = [s.name for s in self._sprites]
        live = set(names)
        ordered = [v for v in dict.fromkeys(self._zorder) if v in live]
        placed = set(ordered)
        self._zorder = ordered + [v for v in names if v not in placed]

    def _dispose_sprites(self) -> None:
        for sprite in list(self._sprites):
            sprite.dispose()

    def dispose(self) -> None:
        """Dispose the project and its sprites. Watchers are detached first,
        so tearing down does not schedule saves."""
        if self.disposed:
            return
        self.events.clear_subscribers()
        super().dispose()

    def export_without_revision_state(self) -> Bundle:
        """Export metadata and files without revision state.

        version, c_time and u_time are rewritten by the server after a
        sync, so they must not count as unsynced changes.
        """
        metadata = Metadata(
            id=self._id,
            owner=self._owner,
            name=self._name,
            is_public=self._is_public,
        )
        stage_config, stage_files = self._stage.export()
        config = {**stage_config, "zorder": list(self._zorder)}
        files: Files = {PROJECT_CONFIG_FILE_PATH: from_config(PROJECT_CONFIG_FILE_NAME, config)}
        files.update(stage_files)
        for sprite in self._sprites:
            files.update(sprite.export())
        for sound in self._sounds:
            files.update(sound.export())
        return metadata, files

    def export(self) -> Bundle:
        """Export metadata and files."""
        metadata, files = self.export_without_revision_state()
        metadata = replace(
            metadata,
            version=self._revision.version,
            c_time=self._revision.c_time,
            u_time=self._revision.u_time,
            has_unsynced_changes=self._revision.has_unsynced_changes,
        )
        return metadata, files

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _get_cloud_store(self) -> CloudStore:
        if self._cloud_store is None:
            from ..config import get_settings
            from ..persistence.cloud import HttpCloudStore

            self._cloud_store = HttpCloudStore.from_settings(get_settings())
        return self._cloud_store

    def _get_local_cache(self) -> LocalCache:
        if self._local_cache is None:
            from ..config import get_settings
            from ..persistence.local import SqliteLocalCache

            self._local_cache = SqliteLocalCache(get_settings().local_cache_path)
        return self._local_cache

    def _get_archive_codec(self) -> ArchiveCodec:
        if self._archive_codec is None:
            from ..persistence.gbp import GbpArchiveCodec

            self._archive_codec = GbpArchiveCodec()
        return self._archive_codec

    async def load_gbp_file(self, blob: File) -> None:
        """Load from an archive blob. Only the name is taken from the
        archive, and only when the project has none yet."""
        metadata, files = await self._get_archive_codec().decode(blob)
        await self.load(Metadata(name=self._name or metadata.name), files)

    async def export_gbp_file(self) -> File:
        metadata, files = self.export()
        return await self._get_archive_codec().encode(metadata, files)

    async def load_from_cloud(
        self,
        owner_or_project_data: Union[str, ProjectData],
        name: Optional[str] = None,
    ) -> None:
        """Load from the project service, by ``(owner, name)`` or from an
        already-fetched :class:`ProjectData`."""
        store = self._get_cloud_store()
        if isinstance(owner_or_project_data, str):
            if name is None:
                raise TypeError("name is required when loading by owner")
            metadata, files = await store.load(owner_or_project_data, name)
        else:
            metadata, files = await store.parse(owner_or_project_data)
        await self.load(metadata, files)

    async def save_to_cloud(self) -> None:
        """Save to the project service and clear the unsynced flag.

        If the save fails the flag is left as it was.
        """
        metadata, files = self.export()
        saved = await self._get_cloud_store().save(metadata, files)
        self.apply_metadata(saved)
        self.has_unsynced_changes = False

    async def load_from_local_cache(self, key: str) -> None:
        """Load from the local cache.

        Raises:
            NotFoundError: If nothing is cached under ``key``.
        """
        cached = await self._get_local_cache().load(key)
        if cached is None:
            raise NotFoundError("no project in local cache", kind="local_cache", name=key)
        metadata, files = cached
        await self.load(metadata, files)

    def start_watch_to_sync_local_cache(self, key: str) -> None:
        """Save to the local cache after every change, debounced.

        Must be called with a running event loop. A save is scheduled
        immediately as well. The save writes the last state seen while the
        project was live, so a save still pending at dispose time does not
        store the torn-down project.
        """
        from ..utils.debounce import Debouncer

        last = [self.export()]

        async def save_exports() -> None:
            metadata, files = last[0]
            await self._get_local_cache().save(key, metadata, files)

        debouncer = Debouncer(save_exports, self.sync_debounce_seconds)

        def on_change(event: Event) -> None:
            snapshot = self.export()
            if snapshot != last[0]:
                last[0] = snapshot
                debouncer.trigger()

        self.add_disposer(self.events.subscribe(None, on_change))
        debouncer.trigger()

    def start_watch_to_set_has_unsynced_changes(self) -> None:
        """Flag content changes as unsynced.

        Should be called before :meth:`start_watch_to_sync_local_cache`.
        """
        last = [self.export_without_revision_state()]

        def on_change(event: Event) -> None:
            snapshot = self.export_without_revision_state()
            if snapshot != last[0]:
                last[0] = snapshot
                self.has_unsynced_changes = True

        self.add_disposer(self.events.subscribe(None, on_change))
