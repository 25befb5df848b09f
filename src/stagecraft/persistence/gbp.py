"""``.gbp`` archive codec.

A ``.gbp`` file is a zip archive holding every bundle path as a member.
The project name travels as the archive file name (``demo.gbp``); no
other metadata is stored. Each member's MIME type is kept in its zip
comment as ``type=<mime>``; members without one get a guessed type.
"""

import io
import logging
import posixpath
import zipfile

from ..exceptions import ArchiveError
from ..models.common.file import File, Files, guess_type
from ..models.metadata import Metadata
from ..utils.async_io import run_blocking
from .base import ArchiveCodec, Bundle

logger = logging.getLogger(__name__)

GBP_EXTENSION = ".gbp"
GBP_MIME_TYPE = "application/zip"
DEFAULT_ARCHIVE_NAME = "Untitled"
TYPE_COMMENT_PREFIX = b"type="


def project_name_from_file_name(file_name: str) -> str:
    base = posixpath.basename(file_name.replace("\\", "/"))
    if base.lower().endswith(GBP_EXTENSION):
        base = base[: -len(GBP_EXTENSION)]
    return base


class GbpArchiveCodec(ArchiveCodec):
    """Zip-based :class:`ArchiveCodec`."""

    def __init__(self, compression: int = zipfile.ZIP_DEFLATED) -> None:
        self.compression = compression

    def _decode(self, blob: File) -> Bundle:
        files: Files = {}
        with zipfile.ZipFile(io.BytesIO(blob.content)) as archive:
            for info in archive.infolist():
                if info.is_dir():
                    continue
                name = posixpath.basename(info.filename)
                if info.comment.startswith(TYPE_COMMENT_PREFIX):
                    file_type = info.comment[len(TYPE_COMMENT_PREFIX):].decode("utf-8")
                else:
                    file_type = guess_type(name)
                files[info.filename] = File(name=name, content=archive.read(info), type=file_type)
        return Metadata(name=project_name_from_file_name(blob.name) or None), files

    def _encode(self, metadata: Metadata, files: Files) -> File:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=self.compression) as archive:
            for path in sorted(files):
                info = zipfile.ZipInfo(path)
                info.compress_type = self.compression
                info.comment = TYPE_COMMENT_PREFIX + files[path].type.encode("utf-8")
                archive.writestr(info, files[path].content)
        name = f"{metadata.name or DEFAULT_ARCHIVE_NAME}{GBP_EXTENSION}"
        return File(name=name, content=buffer.getvalue(), type=GBP_MIME_TYPE)

    async def decode(self, blob: File) -> Bundle:
        try:
            metadata, files = await run_blocking(self._decode, blob)
        except (zipfile.BadZipFile, OSError, EOFError) as e:
            raise ArchiveError(f"Invalid archive {blob.name}: {e}", operation="decode", target=blob.name, cause=e)
        logger.info(f"Decoded {blob.name} ({len(files)} files)")
        return metadata, files

    async def encode(self, metadata: Metadata, files: Files) -> File:
        try:
            blob = await run_blocking(self._encode, metadata, files)
        except OSError as e:
            raise ArchiveError(f"Failed to write archive: {e}", operation="encode", target=metadata.name, cause=e)
        logger.info(f"Encoded {blob.name} ({len(files)} files, {blob.size} bytes)")
        return blob
