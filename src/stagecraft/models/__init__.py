"""Stagecraft project model: stage, sprites, sounds and the project itself."""

from .common import Asset, File, Files
from .disposable import Disposable
from .metadata import IsPublic, Metadata, RevisionState
from .project import Project, full_name
from .sound import Sound
from .sprite import Costume, Sprite
from .stage import Backdrop, Stage

__all__ = [
    "Asset",
    "Backdrop",
    "Costume",
    "Disposable",
    "File",
    "Files",
    "IsPublic",
    "Metadata",
    "Project",
    "RevisionState",
    "Sound",
    "Sprite",
    "Stage",
    "full_name",
]
