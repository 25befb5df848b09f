"""Project metadata: identity, visibility and revision state."""

from dataclasses import dataclass, fields, replace
from enum import IntEnum
from typing import Any, Dict, Optional


class IsPublic(IntEnum):
    """Project visibility."""
    PERSONAL = 0
    PUBLIC = 1


# Revision state is written by the server on sync and never counts as
# a content change.
REVISION_FIELDS = ("version", "c_time", "u_time", "has_unsynced_changes")

# Python field name -> wire (camelCase) key
_WIRE_KEYS = {
    "id": "id",
    "owner": "owner",
    "name": "name",
    "is_public": "isPublic",
    "version": "version",
    "c_time": "cTime",
    "u_time": "uTime",
    "has_unsynced_changes": "hasUnsyncedChanges",
}


@dataclass
class RevisionState:
    """Revision fields of a project, kept apart from its content."""
    version: int = 0
    c_time: Optional[str] = None
    u_time: Optional[str] = None
    has_unsynced_changes: bool = False


@dataclass
class Metadata:
    """Subset of project fields that round-trips through persistence.

    Every field is optional; ``None`` means "not provided" and is skipped
    by :meth:`provided` and by ``Project.apply_metadata``.
    """
    id: Optional[str] = None
    owner: Optional[str] = None
    name: Optional[str] = None
    is_public: Optional[IsPublic] = None
    version: Optional[int] = None
    c_time: Optional[str] = None
    u_time: Optional[str] = None
    has_unsynced_changes: Optional[bool] = None

    def provided(self) -> Dict[str, Any]:
        """Return the fields that are set, keyed by attribute name."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }

    def without_revision_state(self) -> "Metadata":
        return replace(self, **{name: None for name in REVISION_FIELDS})

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase wire format, omitting unset fields."""
        data = {}
        for name, value in self.provided().items():
            data[_WIRE_KEYS[name]] = int(value) if name == "is_public" else value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Metadata":
        """Create from the camelCase wire format. Unknown keys are ignored."""
        kwargs = {}
        for name, key in _WIRE_KEYS.items():
            if data.get(key) is not None:
                kwargs[name] = data[key]
        if "is_public" in kwargs:
            kwargs["is_public"] = IsPublic(kwargs["is_public"])
        return cls(**kwargs)
