"""Sound model.

Bundle layout for a sound named ``Meow``::

    assets/sounds/Meow/index.json    # config, including the audio file name
    assets/sounds/Meow/<audio file>
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

from ..core.events import EventType
from ..exceptions import ProjectConfigError
from .common.asset import Asset
from .common.file import File, Files, from_config, join, list_dirs, to_config

if TYPE_CHECKING:
    from .project import Project

logger = logging.getLogger(__name__)

SOUNDS_DIR = "assets/sounds"
CONFIG_FILE_NAME = "index.json"


def sound_dir(name: str) -> str:
    return join(SOUNDS_DIR, name)


class Sound(Asset):
    """A named audio asset."""

    kind = "sound"

    def __init__(self, name: str, file: File, config: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(name)
        self._file = file
        self._config: Dict[str, Any] = dict(config or {})

    @property
    def file(self) -> File:
        return self._file

    @property
    def config(self) -> Dict[str, Any]:
        return dict(self._config)

    def _sibling_names(self, project: "Project") -> Iterable[str]:
        return (s.name for s in project.sounds if s is not self)

    def set_file(self, file: File) -> None:
        self._file = file
        self._emit(EventType.CHANGED, field="file")

    def update_config(self, **updates: Any) -> None:
        self._config.update(updates)
        self._emit(EventType.CHANGED, field="config", keys=sorted(updates))

    def export(self) -> Files:
        base = sound_dir(self.name)
        config = dict(self._config)
        config["path"] = self._file.name
        return {
            join(base, CONFIG_FILE_NAME): from_config(CONFIG_FILE_NAME, config),
            join(base, self._file.name): self._file,
        }

    @classmethod
    async def load(cls, name: str, files: Files) -> "Sound":
        """Load the sound called ``name`` from a bundle.

        Raises:
            ProjectConfigError: If the sound config or audio file is missing.
        """
        base = sound_dir(name)
        config_path = join(base, CONFIG_FILE_NAME)
        config_file = files.get(config_path)
        if config_file is None:
            raise ProjectConfigError(f"Sound config not found for {name}", path=config_path)

        config = to_config(config_file)
        audio_path = join(base, config.pop("path", ""))
        audio_file = files.get(audio_path)
        if audio_file is None:
            raise ProjectConfigError(f"Audio file not found for sound {name}", path=audio_path)
        return cls(name, audio_file, config=config)

    @classmethod
    async def load_all(cls, files: Files) -> List["Sound"]:
        """Load every sound found in the bundle."""
        names = [
            name for name in list_dirs(files, SOUNDS_DIR)
            if join(sound_dir(name), CONFIG_FILE_NAME) in files
        ]
        sounds = await asyncio.gather(*(cls.load(name, files) for name in names))
        logger.debug(f"Loaded {len(sounds)} sounds")
        return list(sounds)
