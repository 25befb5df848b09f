"""Contracts for the persistence adapters.

The project model talks to three destinations, each behind an abstract
adapter so transports can be swapped (and faked in tests):

- :class:`CloudStore`: the project service
- :class:`LocalCache`: an on-device cache keyed by string
- :class:`ArchiveCodec`: single-blob archive import/export

All adapter methods are coroutines. Failures raise a
:class:`~stagecraft.exceptions.StorageError` subclass; adapters never retry.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from ..models.common.file import File, Files
from ..models.metadata import IsPublic, Metadata

Bundle = Tuple[Metadata, Files]


@dataclass
class ProjectData:
    """Project payload as returned by the project service.

    ``files`` maps bundle paths to download URLs.
    """
    owner: str
    name: str
    id: Optional[str] = None
    is_public: IsPublic = IsPublic.PERSONAL
    version: int = 0
    c_time: Optional[str] = None
    u_time: Optional[str] = None
    files: Dict[str, str] = field(default_factory=dict)

    def to_metadata(self) -> Metadata:
        return Metadata(
            id=self.id,
            owner=self.owner,
            name=self.name,
            is_public=self.is_public,
            version=self.version,
            c_time=self.c_time,
            u_time=self.u_time,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProjectData":
        return cls(
            owner=data["owner"],
            name=data["name"],
            id=data.get("id"),
            is_public=IsPublic(data.get("isPublic", IsPublic.PERSONAL)),
            version=data.get("version", 0),
            c_time=data.get("cTime"),
            u_time=data.get("uTime"),
            files=dict(data.get("files") or {}),
        )


class CloudStore(ABC):
    """Project service adapter."""

    @abstractmethod
    async def load(self, owner: str, name: str) -> Bundle:
        """Fetch a project by owner and name."""

    @abstractmethod
    async def parse(self, project_data: ProjectData) -> Bundle:
        """Resolve an already-fetched project payload into a bundle."""

    @abstractmethod
    async def save(self, metadata: Metadata, files: Files) -> Metadata:
        """Save a bundle, returning the server-assigned metadata."""


class LocalCache(ABC):
    """On-device project cache."""

    @abstractmethod
    async def load(self, key: str) -> Optional[Bundle]:
        """Return the bundle cached under ``key``, or None."""

    @abstractmethod
    async def save(self, key: str, metadata: Metadata, files: Files) -> None:
        """Replace whatever is cached under ``key``."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Drop ``key``; returns True if something was removed."""


class ArchiveCodec(ABC):
    """Single-blob archive format."""

    @abstractmethod
    async def decode(self, blob: File) -> Bundle:
        """Unpack an archive blob."""

    @abstractmethod
    async def encode(self, metadata: Metadata, files: Files) -> File:
        """Pack a bundle into an archive blob."""
