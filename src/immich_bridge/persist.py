"""
Saving downloaded originals into host file storage.

Files are never overwritten: a name that is taken gets a numeric suffix
before its extension (photo.jpg -> photo_1.jpg -> photo_2.jpg ...).
"""

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import BinaryIO

from immich_bridge.errors import FilesystemConflictError, PersistError

logger = logging.getLogger(__name__)


def sanitize_file_name(file_name: str, asset_id: str) -> str:
    """Strip directory components; synthesize a name when nothing is left."""
    name = PurePosixPath((file_name or "").replace("\\", "/")).name
    if name in ("", ".", ".."):
        return f"image_{asset_id}.jpg"
    return name


def candidate_names(file_name: str) -> Iterator[str]:
    """The desired name, then stem_1.ext, stem_2.ext, ... without end."""
    path = PurePosixPath(file_name)
    stem, suffix = path.stem, path.suffix
    yield file_name
    n = 1
    while True:
        yield f"{stem}_{n}{suffix}"
        n += 1


@dataclass
class TargetFolder:
    """A validated folder inside a user's storage."""

    path: Path
    relative: str

    def relative_to_root(self, name: str) -> str:
        return f"{self.relative}/{name}" if self.relative else name


class AssetPersister:
    """Writes payloads into one user's storage root."""

    def __init__(self, user_root: Path | str):
        self.user_root = Path(user_root)

    def resolve_folder(self, target_path: str) -> TargetFolder:
        """
        Validate a target folder given relative to the user's storage root.

        Raises:
            FilesystemConflictError: If the folder is outside the root,
                does not exist, or is not a folder
        """
        relative = (target_path or "").strip("/")
        if not relative:
            # The user's own root is created on first use
            self.user_root.mkdir(parents=True, exist_ok=True)
            return TargetFolder(path=self.user_root.resolve(), relative="")

        root = self.user_root.resolve()
        folder = (root / relative).resolve()
        if not folder.is_relative_to(root):
            raise FilesystemConflictError("Target folder is outside user storage")
        if not folder.exists():
            raise FilesystemConflictError("Target folder does not exist")
        if not folder.is_dir():
            raise FilesystemConflictError("Target is not a folder")
        rel = folder.relative_to(root).as_posix()
        return TargetFolder(path=folder, relative="" if rel == "." else rel)

    def _create_exclusive(self, folder: Path, file_name: str) -> tuple[str, BinaryIO]:
        for name in candidate_names(file_name):
            candidate = folder / name
            if candidate.exists():
                continue
            try:
                return name, open(candidate, "xb")
            except FileExistsError:
                # Created between the check and the open
                continue
            except OSError as e:
                raise PersistError(f"Failed to create {name}: {e}") from e
        raise PersistError(f"No free file name for {file_name}")  # unreachable

    def save(
        self,
        target: TargetFolder,
        file_name: str,
        asset_id: str,
        chunks: Iterable[bytes],
    ) -> str:
        """
        Write chunks into a new file in the target folder.

        Args:
            target: Folder returned by resolve_folder
            file_name: Desired file name (directory parts are ignored)
            asset_id: Asset id, used when file_name is empty
            chunks: Payload bytes

        Returns:
            Path of the new file relative to the user's storage root
        """
        desired = sanitize_file_name(file_name, asset_id)
        final_name, fh = self._create_exclusive(target.path, desired)
        with fh:
            try:
                for chunk in chunks:
                    fh.write(chunk)
            except OSError as e:
                raise PersistError(f"Failed to write {final_name}: {e}") from e

        rel = target.relative_to_root(final_name)
        logger.info(f"Saved asset {asset_id} to {rel}")
        return rel
