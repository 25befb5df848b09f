"""Stagecraft - project model for a sprite-based game editor."""
__version__ = "0.1.0"

from .models import (
    Backdrop,
    Costume,
    File,
    Files,
    IsPublic,
    Metadata,
    Project,
    Sound,
    Sprite,
    Stage,
    full_name,
)

from .exceptions import (
    StagecraftError,
    ConfigurationError,
    ProjectConfigError,
    DuplicateNameError,
    NotFoundError,
    StorageError,
    CloudStoreError,
    LocalCacheError,
    ArchiveError,
)

from .core.events import Event, EventBus, EventType

from .config import Settings, SettingsManager, get_settings

# Structured logging
from .utils.logging import (
    LogConfig,
    StagecraftLogger,
    configure_logging,
    get_logger,
    set_level,
)

__all__ = [
    "__version__",
    # Model
    "Backdrop",
    "Costume",
    "File",
    "Files",
    "IsPublic",
    "Metadata",
    "Project",
    "Sound",
    "Sprite",
    "Stage",
    "full_name",
    # Exceptions
    "StagecraftError",
    "ConfigurationError",
    "ProjectConfigError",
    "DuplicateNameError",
    "NotFoundError",
    "StorageError",
    "CloudStoreError",
    "LocalCacheError",
    "ArchiveError",
    # Events
    "Event",
    "EventBus",
    "EventType",
    # Settings
    "Settings",
    "SettingsManager",
    "get_settings",
    # Logging
    "LogConfig",
    "StagecraftLogger",
    "configure_logging",
    "get_logger",
    "set_level",
]
