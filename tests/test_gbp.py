"""Tests for the .gbp archive codec and project import/export."""
import asyncio
import io
import zipfile

import pytest

from stagecraft.exceptions import ArchiveError
from stagecraft.models import File, Metadata, Project
from stagecraft.persistence import GbpArchiveCodec
from stagecraft.persistence.gbp import project_name_from_file_name


@pytest.fixture
def codec():
    return GbpArchiveCodec()


@pytest.fixture
def files():
    return {
        "main.spx": File.from_text("main.spx", "onStart => {}"),
        "assets/index.json": File.from_text("index.json", '{"zorder": []}'),
    }


class TestGbpArchiveCodec:
    """Tests for GbpArchiveCodec."""

    def test_encode_is_a_zip(self, codec, files):
        """Test every bundle path becomes an archive member."""
        blob = asyncio.run(codec.encode(Metadata(name="demo"), files))

        assert blob.name == "demo.gbp"
        with zipfile.ZipFile(io.BytesIO(blob.content)) as archive:
            assert sorted(archive.namelist()) == ["assets/index.json", "main.spx"]
            assert archive.read("main.spx") == b"onStart => {}"

    def test_encode_without_name(self, codec, files):
        """Test an unnamed project gets a default archive name."""
        blob = asyncio.run(codec.encode(Metadata(), files))
        assert blob.name == "Untitled.gbp"

    def test_decode_takes_name_from_file_name(self, codec, files):
        """Test the project name comes from the blob name."""
        blob = asyncio.run(codec.encode(Metadata(name="demo"), files))
        renamed = File("My Game.gbp", blob.content, blob.type)

        metadata, decoded = asyncio.run(codec.decode(renamed))

        assert metadata == Metadata(name="My Game")
        assert decoded == files

    def test_decode_skips_directories(self, codec):
        """Test directory entries are not bundle files."""
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as archive:
            archive.writestr("assets/", b"")
            archive.writestr("assets/a.png", b"png")
        metadata, decoded = asyncio.run(codec.decode(File("x.gbp", buffer.getvalue())))
        assert list(decoded) == ["assets/a.png"]
        assert decoded["assets/a.png"].name == "a.png"

    def test_file_types_survive_round_trip(self, codec):
        """Test stored types come back as written, even unusual or empty ones."""
        files = {
            "main.spx": File("main.spx", b"onStart => {}", "text/x-spx"),
            "assets/blob": File("blob", b"\x00\x01", ""),
        }
        blob = asyncio.run(codec.encode(Metadata(name="demo"), files))

        _, decoded = asyncio.run(codec.decode(blob))

        assert decoded == files

    def test_member_without_type_comment_gets_guess(self, codec):
        """Test archives written by other tools still decode with a guessed type."""
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as archive:
            archive.writestr("assets/index.json", b"{}")
        _, decoded = asyncio.run(codec.decode(File("x.gbp", buffer.getvalue())))
        assert decoded["assets/index.json"].type == "application/json"

    def test_decode_invalid_archive(self, codec):
        """Test a blob that is not a zip raises ArchiveError."""
        with pytest.raises(ArchiveError) as exc_info:
            asyncio.run(codec.decode(File("broken.gbp", b"not a zip")))
        assert isinstance(exc_info.value.cause, zipfile.BadZipFile)

    @pytest.mark.parametrize("file_name,expected", [
        ("demo.gbp", "demo"),
        ("DEMO.GBP", "DEMO"),
        ("dir/demo.gbp", "demo"),
        ("demo.zip", "demo.zip"),
    ])
    def test_project_name_from_file_name(self, file_name, expected):
        """Test archive file names map to project names."""
        assert project_name_from_file_name(file_name) == expected


class TestProjectArchive:
    """Tests for Project.load_gbp_file and export_gbp_file."""

    def test_export_then_import(self, project, make_sprite, make_sound):
        """Test an exported archive loads into an equal project."""
        project.apply_metadata(Metadata(name="demo"))
        project.add_sprite(make_sprite("Cat"))
        project.add_sprite(make_sprite("Dog"))
        project.add_sound(make_sound("Meow"))
        project.bottom_sprite_zorder("Dog")

        blob = asyncio.run(project.export_gbp_file())
        other = Project(archive_codec=GbpArchiveCodec())
        asyncio.run(other.load_gbp_file(blob))

        assert blob.name == "demo.gbp"
        assert other.name == "demo"
        assert other.zorder == ["Dog", "Cat"]
        assert other.export_without_revision_state() == project.export_without_revision_state()
        other.dispose()

    def test_existing_name_wins(self, project, codec, files):
        """Test importing keeps the project's own name."""
        project.apply_metadata(Metadata(name="mine"))
        blob = asyncio.run(codec.encode(Metadata(name="theirs"), files))

        asyncio.run(project.load_gbp_file(blob))

        assert project.name == "mine"

    def test_import_only_applies_name(self, project, codec, files):
        """Test importing leaves owner and id untouched."""
        project.apply_metadata(Metadata(id="p1", owner="alice"))
        blob = asyncio.run(codec.encode(Metadata(name="theirs"), files))

        asyncio.run(project.load_gbp_file(blob))

        assert project.name == "theirs"
        assert project.owner == "alice"
        assert project.id == "p1"
