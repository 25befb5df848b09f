"""Stage model.

The stage exports its config as a document (merged by the project into
``assets/index.json``) plus its own files: ``main.spx`` and backdrop
images under ``assets/``.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..core.events import Event, EventBus, EventType
from ..exceptions import ProjectConfigError
from .common.file import File, Files, join

logger = logging.getLogger(__name__)

ASSETS_DIR = "assets"
STAGE_CODE_FILE_NAME = "main.spx"

RawStageConfig = Dict[str, Any]


@dataclass(frozen=True)
class Backdrop:
    """A stage backdrop image."""
    name: str
    file: File
    bitmap_resolution: int = 1

    def to_config(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "path": self.file.name,
            "bitmapResolution": self.bitmap_resolution,
        }


class Stage:
    """The project stage: code, free-form config and backdrops."""

    def __init__(
        self,
        code: str = "",
        config: Optional[RawStageConfig] = None,
        backdrops: Optional[Iterable[Backdrop]] = None,
        backdrop_index: int = 0,
    ) -> None:
        self._code = code
        self._config: RawStageConfig = dict(config or {})
        self._backdrops: List[Backdrop] = list(backdrops or [])
        self._backdrop_index = backdrop_index
        self.events = EventBus()

    @property
    def code(self) -> str:
        return self._code

    @property
    def config(self) -> RawStageConfig:
        return dict(self._config)

    @property
    def backdrops(self) -> List[Backdrop]:
        return list(self._backdrops)

    @property
    def backdrop_index(self) -> int:
        return self._backdrop_index

    def _emit(self, **data: Any) -> None:
        self.events.emit(Event(EventType.CHANGED, source="stage", data=data))

    def set_code(self, code: str) -> None:
        self._code = code
        self._emit(field="code")

    def update_config(self, **updates: Any) -> None:
        self._config.update(updates)
        self._emit(field="config", keys=sorted(updates))

    def add_backdrop(self, backdrop: Backdrop) -> None:
        self._backdrops.append(backdrop)
        self._emit(field="backdrops")

    def set_backdrop_index(self, index: int) -> None:
        if not 0 <= index < len(self._backdrops):
            raise IndexError(f"backdrop index {index} out of range")
        self._backdrop_index = index
        self._emit(field="backdrop_index")

    def export(self) -> Tuple[RawStageConfig, Files]:
        config = dict(self._config)
        config["backdrops"] = [b.to_config() for b in self._backdrops]
        config["backdropIndex"] = self._backdrop_index

        files: Files = {STAGE_CODE_FILE_NAME: File.from_text(STAGE_CODE_FILE_NAME, self._code)}
        for backdrop in self._backdrops:
            files[join(ASSETS_DIR, backdrop.file.name)] = backdrop.file
        return config, files

    @classmethod
    async def load(cls, config: RawStageConfig, files: Files) -> "Stage":
        """Load the stage from its config document and the bundle.

        Raises:
            ProjectConfigError: If a backdrop file is missing.
        """
        config = dict(config)
        backdrop_configs = config.pop("backdrops", None) or []
        backdrop_index = config.pop("backdropIndex", 0)

        backdrops = []
        for backdrop_config in backdrop_configs:
            path = join(ASSETS_DIR, backdrop_config.get("path", ""))
            backdrop_file = files.get(path)
            if backdrop_file is None:
                raise ProjectConfigError("Backdrop file not found", path=path)
            backdrops.append(
                Backdrop(
                    name=backdrop_config.get("name", backdrop_file.name),
                    file=backdrop_file,
                    bitmap_resolution=backdrop_config.get("bitmapResolution", 1),
                )
            )

        code_file = files.get(STAGE_CODE_FILE_NAME)
        code = code_file.text() if code_file is not None else ""
        logger.debug(f"Loaded stage with {len(backdrops)} backdrops")
        return cls(code=code, config=config, backdrops=backdrops, backdrop_index=backdrop_index)
