"""Sprite model: named asset with code, config and costumes.

Bundle layout for a sprite named ``Cat``::

    Cat.spx                          # code
    assets/sprites/Cat/index.json    # config + costume list
    assets/sprites/Cat/<costume>     # costume images
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

from ..core.events import EventType
from ..exceptions import NotFoundError, ProjectConfigError
from .common.asset import RESERVED_SPRITE_NAMES, Asset
from .common.file import File, Files, from_config, join, list_dirs, to_config

if TYPE_CHECKING:
    from .project import Project

logger = logging.getLogger(__name__)

SPRITES_DIR = "assets/sprites"
CONFIG_FILE_NAME = "index.json"
CODE_FILE_EXTENSION = ".spx"


@dataclass(frozen=True)
class Costume:
    """A sprite costume image."""
    name: str
    file: File
    x: float = 0
    y: float = 0
    bitmap_resolution: int = 1

    def to_config(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "path": self.file.name,
            "x": self.x,
            "y": self.y,
            "bitmapResolution": self.bitmap_resolution,
        }

    @classmethod
    def from_config(cls, config: Dict[str, Any], file: File) -> "Costume":
        return cls(
            name=config.get("name", file.name),
            file=file,
            x=config.get("x", 0),
            y=config.get("y", 0),
            bitmap_resolution=config.get("bitmapResolution", 1),
        )


def sprite_dir(name: str) -> str:
    return join(SPRITES_DIR, name)


def code_file_name(name: str) -> str:
    return f"{name}{CODE_FILE_EXTENSION}"


class Sprite(Asset):
    """A named sprite.

    ``config`` holds the free-form sprite settings (position, heading,
    size, visibility, ...). The model does not interpret them beyond
    round-tripping them through the bundle.
    """

    kind = "sprite"

    def __init__(
        self,
        name: str,
        code: str = "",
        config: Optional[Dict[str, Any]] = None,
        costumes: Optional[Iterable[Costume]] = None,
        costume_index: int = 0,
    ) -> None:
        super().__init__(name)
        self._code = code
        self._config: Dict[str, Any] = dict(config or {})
        self._costumes: List[Costume] = list(costumes or [])
        self._costume_index = costume_index

    @property
    def code(self) -> str:
        return self._code

    @property
    def config(self) -> Dict[str, Any]:
        """Copy of the sprite config."""
        return dict(self._config)

    @property
    def costumes(self) -> List[Costume]:
        return list(self._costumes)

    @property
    def costume_index(self) -> int:
        return self._costume_index

    def _sibling_names(self, project: "Project") -> Iterable[str]:
        return [*RESERVED_SPRITE_NAMES, *(s.name for s in project.sprites if s is not self)]

    def set_code(self, code: str) -> None:
        self._code = code
        self._emit(EventType.CHANGED, field="code")

    def update_config(self, **updates: Any) -> None:
        """Merge ``updates`` into the sprite config."""
        self._config.update(updates)
        self._emit(EventType.CHANGED, field="config", keys=sorted(updates))

    def add_costume(self, costume: Costume) -> None:
        self._costumes.append(costume)
        self._emit(EventType.CHANGED, field="costumes")

    def remove_costume(self, name: str) -> None:
        for idx, costume in enumerate(self._costumes):
            if costume.name == name:
                del self._costumes[idx]
                break
        else:
            raise NotFoundError(f"costume {name} not found in sprite {self.name}", kind="costume", name=name)
        if self._costume_index >= len(self._costumes):
            self._costume_index = max(len(self._costumes) - 1, 0)
        self._emit(EventType.CHANGED, field="costumes")

    def set_costume_index(self, index: int) -> None:
        if not 0 <= index < len(self._costumes):
            raise IndexError(f"costume index {index} out of range")
        self._costume_index = index
        self._emit(EventType.CHANGED, field="costume_index")

    def dispose(self) -> None:
        """Dispose the sprite, running its lifetime observers first."""
        super().dispose()
        self.set_project(None)

    def export(self) -> Files:
        base = sprite_dir(self.name)
        config = dict(self._config)
        config["costumes"] = [c.to_config() for c in self._costumes]
        config["costumeIndex"] = self._costume_index

        files: Files = {join(base, CONFIG_FILE_NAME): from_config(CONFIG_FILE_NAME, config)}
        for costume in self._costumes:
            files[join(base, costume.file.name)] = costume.file
        code_name = code_file_name(self.name)
        files[code_name] = File.from_text(code_name, self._code)
        return files

    @classmethod
    async def load(cls, name: str, files: Files) -> "Sprite":
        """Load the sprite called ``name`` from a bundle.

        Raises:
            ProjectConfigError: If the sprite config or a costume file is missing.
        """
        base = sprite_dir(name)
        config_path = join(base, CONFIG_FILE_NAME)
        config_file = files.get(config_path)
        if config_file is None:
            raise ProjectConfigError(f"Sprite config not found for {name}", path=config_path)

        config = to_config(config_file)
        costume_configs = config.pop("costumes", None) or []
        costume_index = config.pop("costumeIndex", 0)

        costumes = []
        for costume_config in costume_configs:
            path = join(base, costume_config.get("path", ""))
            costume_file = files.get(path)
            if costume_file is None:
                raise ProjectConfigError(f"Costume file not found for sprite {name}", path=path)
            costumes.append(Costume.from_config(costume_config, costume_file))

        code_file = files.get(code_file_name(name))
        code = code_file.text() if code_file is not None else ""
        return cls(name, code=code, config=config, costumes=costumes, costume_index=costume_index)

    @classmethod
    async def load_all(cls, files: Files) -> List["Sprite"]:
        """Load every sprite found in the bundle."""
        names = [
            name for name in list_dirs(files, SPRITES_DIR)
            if join(sprite_dir(name), CONFIG_FILE_NAME) in files
        ]
        sprites = await asyncio.gather(*(cls.load(name, files) for name in names))
        logger.debug(f"Loaded {len(sprites)} sprites")
        return list(sprites)
