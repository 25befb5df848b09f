"""Named project assets and sibling-unique name resolution."""

import logging
import re
import weakref
from typing import TYPE_CHECKING, Any, Iterable, Optional

from ...core.events import Event, EventBus, EventType
from ...exceptions import DuplicateNameError
from ..disposable import Disposable
from .file import Files

if TYPE_CHECKING:
    from ..project import Project

logger = logging.getLogger(__name__)

DEFAULT_SPRITE_NAME = "Sprite"
DEFAULT_SOUND_NAME = "Sound"

# main.spx is the stage code file
RESERVED_SPRITE_NAMES = frozenset({"main"})

_INVALID_NAME_CHARS = re.compile(r"\W")


def normalize_name(name: str, default: str) -> str:
    """Turn an arbitrary string into a usable asset name.

    Non-word characters become ``_`` and a leading digit is prefixed
    with ``_``. Blank names fall back to ``default``.
    """
    name = _INVALID_NAME_CHARS.sub("_", name.strip())
    if name and name[0].isdigit():
        name = f"_{name}"
    return name or default


def get_unique_name(desired: str, existing: Iterable[str]) -> str:
    """Return ``desired``, or ``desired`` plus the smallest suffix from 2 up
    that does not collide with ``existing``."""
    taken = set(existing)
    if desired not in taken:
        return desired
    i = 2
    while f"{desired}{i}" in taken:
        i += 1
    return f"{desired}{i}"


def ensure_valid_sprite_name(name: str, project: "Project") -> str:
    """Resolve a sprite name unique among the project's sprites and clear
    of the reserved names."""
    return get_unique_name(
        normalize_name(name, DEFAULT_SPRITE_NAME),
        [*RESERVED_SPRITE_NAMES, *(s.name for s in project.sprites)],
    )


def ensure_valid_sound_name(name: str, project: "Project") -> str:
    """Resolve a sound name unique among the project's sounds."""
    return get_unique_name(
        normalize_name(name, DEFAULT_SOUND_NAME),
        (s.name for s in project.sounds),
    )


class Asset(Disposable):
    """Base class for sprites and sounds.

    An asset knows its current owning project through a weak reference.
    The project owns the asset; the back-reference is bookkeeping only
    and never keeps a project alive.
    """

    kind = "asset"

    def __init__(self, name: str) -> None:
        super().__init__()
        self._name = name
        self._project_ref: Optional["weakref.ReferenceType[Project]"] = None
        self.events = EventBus()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self._name!r})"

    @property
    def name(self) -> str:
        return self._name

    @property
    def project(self) -> Optional["Project"]:
        """Owning project, or None when detached."""
        if self._project_ref is None:
            return None
        return self._project_ref()

    def set_project(self, project: Optional["Project"]) -> None:
        """Attach to ``project`` (detaching from any previous owner) or
        detach with ``None``."""
        self._project_ref = weakref.ref(project) if project is not None else None

    def set_name(self, name: str) -> None:
        """Rename the asset.

        Raises:
            DuplicateNameError: If a sibling in the owning project already
                uses ``name``.
        """
        if name == self._name:
            return
        project = self.project
        if project is not None and name in self._sibling_names(project):
            raise DuplicateNameError(f"{self.kind} name already in use: {name}", name=name)
        old_name, self._name = self._name, name
        logger.debug(f"Renamed {self.kind} {old_name} -> {name}")
        self._emit(EventType.RENAMED, old_name=old_name, new_name=name)

    def _sibling_names(self, project: "Project") -> Iterable[str]:
        raise NotImplementedError

    def _emit(self, event_type: EventType, **data: Any) -> None:
        self.events.emit(Event(event_type, source=f"{self.kind}:{self._name}", data=data))

    def export(self) -> Files:
        """Export this asset's files, keyed by bundle path."""
        raise NotImplementedError
