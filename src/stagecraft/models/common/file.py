"""File bundle primitives and the JSON config codec.

A project travels as a *bundle*: metadata plus a ``Files`` mapping from
relative path to :class:`File`. Config documents (``index.json``) are
ordinary bundle entries encoded with :func:`from_config` and decoded with
:func:`to_config`.
"""

import json
import mimetypes
import posixpath
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ...exceptions import ProjectConfigError

CONFIG_FILE_TYPE = "application/json"


@dataclass(frozen=True)
class File:
    """Immutable file content addressed by a bundle path.

    Two files are equal when name, content and type are equal, so whole
    bundles can be compared structurally.
    """

    name: str
    content: bytes
    type: str = ""

    @classmethod
    def from_text(cls, name: str, text: str, type: Optional[str] = None) -> "File":
        """Create a UTF-8 encoded text file."""
        return cls(name=name, content=text.encode("utf-8"), type=type or guess_type(name))

    def text(self) -> str:
        """Decode the content as UTF-8."""
        return self.content.decode("utf-8")

    @property
    def size(self) -> int:
        return len(self.content)


Files = Dict[str, File]


def guess_type(name: str) -> str:
    """Guess a MIME type from a file name, defaulting to octet-stream."""
    if name.endswith(".spx"):
        return "text/plain"
    mime, _ = mimetypes.guess_type(name)
    return mime or "application/octet-stream"


def join(*parts: str) -> str:
    """Join bundle path segments with forward slashes."""
    return posixpath.join(*parts)


def to_config(file: File) -> Dict[str, Any]:
    """Decode a config file into a document.

    Raises:
        ProjectConfigError: If the file is not a JSON object.
    """
    try:
        config = json.loads(file.content.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProjectConfigError(f"Invalid config file {file.name}: {e}", cause=e)
    if not isinstance(config, dict):
        raise ProjectConfigError(
            f"Config file {file.name} must contain an object, got {type(config).__name__}"
        )
    return config


def from_config(name: str, config: Dict[str, Any]) -> File:
    """Encode a config document as a file named ``name``."""
    content = json.dumps(config, ensure_ascii=False, indent=2)
    return File(name=name, content=content.encode("utf-8"), type=CONFIG_FILE_TYPE)


def list_dirs(files: Files, prefix: str) -> List[str]:
    """Return the sorted names of direct subdirectories of ``prefix``.

    ``{"assets/sprites/A/index.json": ...}`` under ``"assets/sprites"``
    yields ``["A"]``.
    """
    prefix = prefix.rstrip("/") + "/"
    names = set()
    for path in files:
        if not path.startswith(prefix):
            continue
        rest = path[len(prefix):]
        if "/" in rest:
            names.add(rest.split("/", 1)[0])
    return sorted(names)
