"""Tests for the HTTP project service adapter."""
import asyncio
from unittest.mock import MagicMock

import pytest
import requests

from stagecraft.config import Settings
from stagecraft.exceptions import CloudStoreError
from stagecraft.models import File, IsPublic, Metadata
from stagecraft.persistence import HttpCloudStore, ProjectData

BASE_URL = "https://api.test"

PAYLOAD = {
    "id": "p1",
    "owner": "alice",
    "name": "demo",
    "isPublic": 1,
    "version": 3,
    "cTime": "2024-01-01T00:00:00Z",
    "uTime": "2024-01-02T00:00:00Z",
    "files": {
        "main.spx": "https://cdn.test/f/1",
        "assets/index.json": "https://cdn.test/f/2",
    },
}

CONTENTS = {
    "https://cdn.test/f/1": b"onStart => {}",
    "https://cdn.test/f/2": b'{"zorder": []}',
}


def json_response(data):
    response = MagicMock()
    response.json.return_value = data
    return response


def content_response(content, content_type=None):
    response = MagicMock()
    response.content = content
    response.headers = {"Content-Type": content_type} if content_type else {}
    return response


@pytest.fixture
def session():
    session = MagicMock()
    session.get.side_effect = lambda url, **kwargs: content_response(CONTENTS[url])
    return session


@pytest.fixture
def store(session):
    return HttpCloudStore(BASE_URL, token="secret", timeout=5, session=session)


class TestLoad:
    """Tests for HttpCloudStore.load and parse."""

    def test_load(self, store, session):
        """Test loading fetches the payload and downloads every file."""
        session.request.return_value = json_response(PAYLOAD)

        metadata, files = asyncio.run(store.load("alice", "demo"))

        session.request.assert_called_once_with("GET", f"{BASE_URL}/project/alice/demo", timeout=5)
        assert metadata == Metadata(
            id="p1",
            owner="alice",
            name="demo",
            is_public=IsPublic.PUBLIC,
            version=3,
            c_time="2024-01-01T00:00:00Z",
            u_time="2024-01-02T00:00:00Z",
        )
        assert files["main.spx"] == File("main.spx", b"onStart => {}", "text/plain")
        assert files["assets/index.json"].name == "index.json"
        assert files["assets/index.json"].type == "application/json"

    def test_served_content_type_is_kept(self, store, session):
        """Test the type the service serves wins over a guess from the name."""
        session.get.side_effect = lambda url, **kwargs: content_response(
            CONTENTS[url], "text/x-spx; charset=utf-8"
        )

        _, files = asyncio.run(store.parse(ProjectData.from_dict(PAYLOAD)))

        assert files["main.spx"].type == "text/x-spx"
        assert files["assets/index.json"].type == "text/x-spx"

    def test_load_quotes_path_segments(self, store, session):
        """Test owner and name are URL-quoted."""
        session.request.return_value = json_response({**PAYLOAD, "files": {}})
        asyncio.run(store.load("a/b", "my game"))
        assert session.request.call_args[0][1] == f"{BASE_URL}/project/a%2Fb/my%20game"

    def test_parse_project_data(self, store, session):
        """Test parse resolves an existing payload without fetching it."""
        metadata, files = asyncio.run(store.parse(ProjectData.from_dict(PAYLOAD)))
        session.request.assert_not_called()
        assert metadata.version == 3
        assert set(files) == {"main.spx", "assets/index.json"}

    def test_connection_error(self, store, session):
        """Test transport errors are wrapped with the cause chained."""
        error = requests.ConnectionError("refused")
        session.request.side_effect = error

        with pytest.raises(CloudStoreError) as exc_info:
            asyncio.run(store.load("alice", "demo"))

        assert exc_info.value.cause is error
        assert exc_info.value.details["operation"] == "GET"

    def test_http_error(self, store, session):
        """Test error status codes raise CloudStoreError."""
        response = json_response({})
        response.raise_for_status.side_effect = requests.HTTPError("404 Not Found")
        session.request.return_value = response

        with pytest.raises(CloudStoreError):
            asyncio.run(store.load("alice", "missing"))

    def test_download_error(self, store, session):
        """Test a failed file download raises CloudStoreError."""
        session.get.side_effect = requests.Timeout("slow")
        with pytest.raises(CloudStoreError):
            asyncio.run(store.parse(ProjectData.from_dict(PAYLOAD)))

    def test_malformed_payload(self, store, session):
        """Test a payload missing required keys raises CloudStoreError."""
        session.request.return_value = json_response({"id": "x"})
        with pytest.raises(CloudStoreError):
            asyncio.run(store.load("alice", "demo"))


class TestSave:
    """Tests for HttpCloudStore.save."""

    @pytest.fixture
    def files(self):
        return {
            "main.spx": File.from_text("main.spx", "go"),
            "assets/index.json": File.from_text("index.json", "{}"),
        }

    @staticmethod
    def route(session, project_response):
        uploads = []

        def request(method, url, **kwargs):
            if url.endswith("/files"):
                name = kwargs["files"]["file"][0]
                uploads.append(name)
                return json_response({"url": f"https://cdn.test/{name}"})
            return json_response(project_response)

        session.request.side_effect = request
        return uploads

    def test_create_project(self, store, session, files):
        """Test a project without id is created with POST."""
        uploads = self.route(session, PAYLOAD)

        saved = asyncio.run(store.save(Metadata(owner="alice", name="demo", version=0), files))

        assert sorted(uploads) == ["index.json", "main.spx"]
        method, url = session.request.call_args_list[-1][0]
        payload = session.request.call_args_list[-1][1]["json"]
        assert (method, url) == ("POST", f"{BASE_URL}/project")
        assert payload["files"] == {
            "main.spx": "https://cdn.test/main.spx",
            "assets/index.json": "https://cdn.test/index.json",
        }
        assert "version" not in payload
        assert saved.id == "p1"
        assert saved.version == 3

    def test_update_project(self, store, session, files):
        """Test a project with id is updated with PUT."""
        self.route(session, PAYLOAD)

        asyncio.run(store.save(Metadata(id="p1", owner="alice", name="demo"), files))

        method, url = session.request.call_args_list[-1][0]
        assert (method, url) == ("PUT", f"{BASE_URL}/project/alice/demo")

    def test_save_requires_name(self, store, files):
        """Test saving without a name is rejected."""
        with pytest.raises(CloudStoreError):
            asyncio.run(store.save(Metadata(owner="alice"), files))

    def test_upload_without_url(self, store, session, files):
        """Test an upload response without url raises CloudStoreError."""
        session.request.return_value = json_response({})
        with pytest.raises(CloudStoreError):
            asyncio.run(store.save(Metadata(owner="alice", name="demo"), files))


class TestSession:
    """Tests for session setup."""

    def test_bearer_token(self):
        """Test the token is sent as a bearer header."""
        store = HttpCloudStore(BASE_URL, token="secret")
        assert store._get_session().headers["Authorization"] == "Bearer secret"
        store.close()

    def test_no_token(self):
        """Test no Authorization header is sent without a token."""
        store = HttpCloudStore(BASE_URL)
        assert "Authorization" not in store._get_session().headers
        store.close()

    def test_from_settings(self):
        """Test construction from settings."""
        settings = Settings(cloud_base_url="https://x.test/", cloud_token="t", cloud_timeout=7.5)
        store = HttpCloudStore.from_settings(settings)
        assert store.base_url == "https://x.test"
        assert store.timeout == 7.5
