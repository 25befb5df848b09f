"""Shared pytest fixtures for Stagecraft tests."""
import logging
import posixpath
from typing import Callable, Dict, List, Tuple

import pytest

from stagecraft.config import reset_settings
from stagecraft.exceptions import CloudStoreError
from stagecraft.models import Costume, File, Files, IsPublic, Metadata, Project, Sound, Sprite
from stagecraft.models.common.file import guess_type
from stagecraft.persistence import CloudStore, GbpArchiveCodec, InMemoryLocalCache, ProjectData
from stagecraft.utils.logging import ROOT_LOGGER_NAME

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 24
WAV_BYTES = b"RIFF\x24\x00\x00\x00WAVEfmt " + b"\x00" * 16


def make_file(name: str, content: bytes) -> File:
    return File(name=name, content=content, type=guess_type(name))


class FakeCloudStore(CloudStore):
    """In-memory project service.

    Uploaded files are kept by fake URL, so ``parse`` resolves payloads the
    same way the HTTP store does.
    """

    def __init__(self) -> None:
        self.blobs: Dict[str, File] = {}
        self.payloads: Dict[str, ProjectData] = {}
        self.saves: List[Tuple[Metadata, Files]] = []
        self.fail_saves = False
        self._next_id = 1

    async def load(self, owner: str, name: str):
        payload = self.payloads.get(f"{owner}/{name}")
        if payload is None:
            raise CloudStoreError("project not found", operation="GET", target=f"{owner}/{name}")
        return await self.parse(payload)

    async def parse(self, project_data: ProjectData):
        files = {path: self.blobs[url] for path, url in project_data.files.items()}
        return project_data.to_metadata(), files

    async def save(self, metadata: Metadata, files: Files) -> Metadata:
        if self.fail_saves:
            raise CloudStoreError("service unavailable", operation="PUT")
        self.saves.append((metadata, dict(files)))

        urls = {}
        for path, file in files.items():
            url = f"mem://{len(self.blobs)}/{posixpath.basename(path)}"
            self.blobs[url] = file
            urls[path] = url

        key = f"{metadata.owner}/{metadata.name}"
        previous = self.payloads.get(key)
        if previous is None:
            project_id = str(self._next_id)
            self._next_id += 1
            version, c_time = 1, "2024-01-01T00:00:00Z"
        else:
            project_id, version, c_time = previous.id, previous.version + 1, previous.c_time

        payload = ProjectData(
            owner=metadata.owner,
            name=metadata.name,
            id=project_id,
            is_public=IsPublic(metadata.is_public or 0),
            version=version,
            c_time=c_time,
            u_time=f"2024-01-01T00:00:{version:02d}Z",
            files=urls,
        )
        self.payloads[key] = payload
        return payload.to_metadata()


@pytest.fixture
def fake_cloud() -> FakeCloudStore:
    return FakeCloudStore()


@pytest.fixture
def local_cache() -> InMemoryLocalCache:
    return InMemoryLocalCache()


@pytest.fixture
def project(fake_cloud, local_cache):
    """Project wired to in-memory adapters with a short sync window."""
    p = Project(
        cloud_store=fake_cloud,
        local_cache=local_cache,
        archive_codec=GbpArchiveCodec(),
        sync_debounce_seconds=0.05,
    )
    yield p
    p.dispose()


@pytest.fixture
def make_sprite() -> Callable[..., Sprite]:
    """Factory for sprites with one costume."""

    def factory(name: str, code: str = "", costume: bool = True, **config) -> Sprite:
        costumes = [Costume(name="default", file=make_file(f"{name.lower()}.png", PNG_BYTES))] if costume else []
        return Sprite(name, code=code or f'println "{name}"', config=config, costumes=costumes)

    return factory


@pytest.fixture
def make_sound() -> Callable[..., Sound]:
    def factory(name: str) -> Sound:
        return Sound(name, make_file(f"{name.lower()}.wav", WAV_BYTES), config={"rate": 44100})

    return factory


@pytest.fixture(autouse=True)
def reset_stagecraft_state():
    """Restore process-wide settings and logger state after each test."""
    yield
    reset_settings()
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    root_logger.setLevel(logging.NOTSET)
    root_logger.propagate = True
