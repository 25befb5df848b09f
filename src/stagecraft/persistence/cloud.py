"""Project service adapter over HTTP.

Endpoints (relative to ``base_url``):

- ``GET  /project/{owner}/{name}``: fetch a project payload
- ``POST /project``: create a project (metadata has no id)
- ``PUT  /project/{owner}/{name}``: update an existing project
- ``POST /files``: upload one file, returns ``{"url": ...}``

Project payloads look like::

    {"id": "...", "owner": "alice", "name": "demo", "isPublic": 0,
     "version": 3, "cTime": "...", "uTime": "...",
     "files": {"main.spx": "https://.../abc", ...}}
"""

import asyncio
import posixpath
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple
from urllib.parse import quote

import requests

from ..exceptions import CloudStoreError
from ..models.common.file import File, Files, guess_type
from ..models.metadata import Metadata
from ..utils.async_io import run_blocking
from ..utils.logging import get_logger
from .base import Bundle, CloudStore, ProjectData

if TYPE_CHECKING:
    from ..config import Settings

logger = get_logger("persistence.cloud")

DEFAULT_TIMEOUT = 30.0


class HttpCloudStore(CloudStore):
    """:class:`CloudStore` backed by the project service REST API."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        """Initialize the store.

        Args:
            base_url: Service root, e.g. ``https://api.example.com``.
            token: Bearer token sent with every request.
            timeout: Per-request timeout in seconds.
            session: Pre-built session (mainly for tests).
        """
        self.base_url = base_url.rstrip("/")
        self._token = token
        self.timeout = timeout
        self._session = session

    @classmethod
    def from_settings(cls, settings: "Settings") -> "HttpCloudStore":
        return cls(
            base_url=settings.cloud_base_url,
            token=settings.cloud_token,
            timeout=settings.cloud_timeout,
        )

    def _get_session(self) -> requests.Session:
        """Get or create requests session."""
        if self._session is None:
            self._session = requests.Session()
            if self._token:
                self._session.headers.update({"Authorization": f"Bearer {self._token}"})
        return self._session

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    @staticmethod
    def _project_path(owner: str, name: str) -> str:
        return f"/project/{quote(owner, safe='')}/{quote(name, safe='')}"

    def _request_json(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        """Blocking request returning the decoded JSON body."""
        try:
            response = self._get_session().request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            raise CloudStoreError(f"Project service request failed: {e}", operation=method, target=url, cause=e)

    def _download(self, url: str) -> Tuple[bytes, str]:
        """Fetch a file, returning its content and served MIME type."""
        try:
            response = self._get_session().get(url, timeout=self.timeout)
            response.raise_for_status()
            content_type = response.headers.get("Content-Type", "")
            return response.content, content_type.split(";")[0].strip()
        except requests.RequestException as e:
            raise CloudStoreError(f"File download failed: {e}", operation="download", target=url, cause=e)

    def _upload(self, file: File) -> str:
        url = self._url("/files")
        data = self._request_json(
            "POST", url, files={"file": (file.name, file.content, file.type or guess_type(file.name))}
        )
        try:
            return data["url"]
        except (KeyError, TypeError) as e:
            raise CloudStoreError("Upload response has no url", operation="upload", target=url, cause=e)

    async def load(self, owner: str, name: str) -> Bundle:
        url = self._url(self._project_path(owner, name))
        logger.info("Loading project", owner=owner, name=name)
        data = await run_blocking(self._request_json, "GET", url)
        try:
            project_data = ProjectData.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise CloudStoreError(f"Malformed project payload: {e}", operation="GET", target=url, cause=e)
        return await self.parse(project_data)

    async def parse(self, project_data: ProjectData) -> Bundle:
        paths = list(project_data.files)
        contents = await asyncio.gather(
            *(run_blocking(self._download, project_data.files[path]) for path in paths)
        )
        files: Files = {}
        for path, (content, content_type) in zip(paths, contents):
            file_name = posixpath.basename(path)
            files[path] = File(name=file_name, content=content, type=content_type or guess_type(file_name))
        logger.debug("Downloaded project files", owner=project_data.owner, name=project_data.name, files=len(files))
        return project_data.to_metadata(), files

    async def save(self, metadata: Metadata, files: Files) -> Metadata:
        if not metadata.owner and metadata.id is not None:
            raise CloudStoreError("Cannot update a project without owner", operation="save")
        if not metadata.name:
            raise CloudStoreError("Cannot save a project without name", operation="save")

        paths = list(files)
        urls = await asyncio.gather(*(run_blocking(self._upload, files[path]) for path in paths))
        payload = self._payload(metadata, dict(zip(paths, urls)))

        if metadata.id is None:
            method, url = "POST", self._url("/project")
        else:
            method, url = "PUT", self._url(self._project_path(metadata.owner, metadata.name))
        data = await run_blocking(self._request_json, method, url, json=payload)
        logger.info("Saved project", owner=metadata.owner, name=metadata.name, files=len(paths))
        try:
            return ProjectData.from_dict(data).to_metadata()
        except (KeyError, TypeError, ValueError) as e:
            raise CloudStoreError(f"Malformed project payload: {e}", operation=method, target=url, cause=e)

    @staticmethod
    def _payload(metadata: Metadata, file_urls: Dict[str, str]) -> Dict[str, Any]:
        payload = metadata.without_revision_state().to_dict()
        payload["files"] = file_urls
        return payload

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None


__all__ = ["HttpCloudStore"]
