"""Tests for unsynced change tracking and cloud sync."""
import asyncio

import pytest

from stagecraft.exceptions import CloudStoreError
from stagecraft.models import IsPublic, Metadata, Project, Sprite
from stagecraft.persistence import ProjectData


@pytest.fixture
def watched(project):
    project.apply_metadata(Metadata(owner="alice", name="demo"))
    project.start_watch_to_set_has_unsynced_changes()
    return project


class TestUnsyncedChanges:
    """Tests for start_watch_to_set_has_unsynced_changes."""

    def test_starts_clean(self, watched):
        """Test installing the watcher does not mark the project dirty."""
        assert watched.has_unsynced_changes is False

    def test_add_sprite_marks_dirty(self, watched):
        """Test adding a sprite sets the flag."""
        watched.add_sprite(Sprite("Cat"))
        assert watched.has_unsynced_changes is True

    def test_stage_change_marks_dirty(self, watched):
        """Test stage edits set the flag."""
        watched.stage.set_code("x")
        assert watched.has_unsynced_changes is True

    def test_zorder_change_marks_dirty(self, project):
        """Test reordering sprites sets the flag."""
        project.add_sprite(Sprite("a"))
        project.add_sprite(Sprite("b"))
        project.start_watch_to_set_has_unsynced_changes()

        project.top_sprite_zorder("a")

        assert project.has_unsynced_changes is True

    def test_visibility_change_marks_dirty(self, watched):
        """Test metadata content (not revision state) counts as a change."""
        watched.set_public(IsPublic.PUBLIC)
        assert watched.has_unsynced_changes is True

    def test_revision_only_change_is_ignored(self, watched):
        """Test version and timestamps do not count as content changes."""
        watched.apply_metadata(Metadata(version=9, u_time="later"))
        assert watched.has_unsynced_changes is False

    def test_noop_edit_is_ignored(self, watched):
        """Test an edit that leaves the export unchanged keeps the flag clear."""
        sprite = Sprite("Cat")
        watched.add_sprite(sprite)
        watched.has_unsynced_changes = False

        sprite.set_code(sprite.code)

        assert watched.has_unsynced_changes is False

    def test_without_watcher_flag_stays_clear(self, project):
        """Test nothing sets the flag until the watcher is installed."""
        project.add_sprite(Sprite("Cat"))
        assert project.has_unsynced_changes is False

    def test_disposed_project_stops_watching(self, watched):
        """Test disposal removes the watcher."""
        stage = watched.stage
        watched.dispose()
        stage.set_code("x")
        assert watched.has_unsynced_changes is False


class TestSaveToCloud:
    """Tests for save_to_cloud and load_from_cloud."""

    def test_save_clears_flag_and_applies_metadata(self, watched, fake_cloud):
        """Test a successful save clears the flag and takes server metadata."""
        watched.add_sprite(Sprite("Cat"))
        assert watched.has_unsynced_changes is True

        asyncio.run(watched.save_to_cloud())

        assert watched.has_unsynced_changes is False
        assert watched.id == "1"
        assert watched.version == 1
        assert watched.u_time == "2024-01-01T00:00:01Z"
        saved_metadata, saved_files = fake_cloud.saves[0]
        assert saved_metadata.owner == "alice"
        assert "Cat.spx" in saved_files

    def test_edit_after_save_marks_dirty_again(self, watched):
        """Test the flag comes back on the next edit."""
        asyncio.run(watched.save_to_cloud())
        watched.add_sprite(Sprite("Dog"))
        assert watched.has_unsynced_changes is True

    def test_failed_save_keeps_flag(self, watched, fake_cloud):
        """Test a failed save propagates and leaves the flag set."""
        watched.add_sprite(Sprite("Cat"))
        fake_cloud.fail_saves = True

        with pytest.raises(CloudStoreError):
            asyncio.run(watched.save_to_cloud())

        assert watched.has_unsynced_changes is True
        assert watched.id is None

    def test_second_save_bumps_version(self, watched):
        """Test saving again updates the existing project."""
        asyncio.run(watched.save_to_cloud())
        watched.add_sprite(Sprite("Cat"))
        asyncio.run(watched.save_to_cloud())
        assert watched.version == 2
        assert watched.id == "1"

    def test_load_from_cloud_by_name(self, watched, fake_cloud, make_sprite):
        """Test a saved project can be loaded by owner and name."""
        watched.add_sprite(make_sprite("Cat"))
        asyncio.run(watched.save_to_cloud())
        other = Project(cloud_store=fake_cloud)

        asyncio.run(other.load_from_cloud("alice", "demo"))

        assert other.export() == watched.export()
        other.dispose()

    def test_load_from_cloud_with_project_data(self, watched, fake_cloud, make_sprite):
        """Test loading from an already-fetched payload."""
        watched.add_sprite(make_sprite("Cat"))
        asyncio.run(watched.save_to_cloud())
        payload = fake_cloud.payloads["alice/demo"]
        assert isinstance(payload, ProjectData)
        other = Project(cloud_store=fake_cloud)

        asyncio.run(other.load_from_cloud(payload))

        assert other.zorder == ["Cat"]
        assert other.version == 1
        other.dispose()

    def test_load_from_cloud_requires_name(self, project):
        """Test loading by owner alone is rejected."""
        with pytest.raises(TypeError):
            asyncio.run(project.load_from_cloud("alice"))
