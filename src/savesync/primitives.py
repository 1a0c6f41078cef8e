"""
Byte-level primitives — copy a save tree, zip a snapshot.

The core only sequences these and interprets success or failure.
Swap in other implementations by subclassing the ABCs.
"""

from __future__ import annotations

import logging
import os
import shutil
import zipfile
from abc import ABC, abstractmethod
from pathlib import Path

logger = logging.getLogger("savesync.primitives")


def tree_size(root: Path) -> int:
    """Total size in bytes of every regular file under root."""
    total = 0
    for dirpath, _dirs, files in os.walk(root):
        for fname in files:
            try:
                total += (Path(dirpath) / fname).stat().st_size
            except OSError:
                continue
    return total


class SaveCopier(ABC):
    """Copies save trees in and out of snapshot directories."""

    @abstractmethod
    def copy_tree(self, source: Path, dest: Path) -> None:
        """Copy the contents of source into a new directory dest.

        Raises:
            OSError: On any read or write failure.
        """

    @abstractmethod
    def overlay_tree(self, source: Path, dest: Path) -> None:
        """Copy the contents of source over dest, overwriting files.

        Files present only in dest are left alone.

        Raises:
            OSError: On any read or write failure.
        """


class ShutilCopier(SaveCopier):
    """Default copier built on shutil."""

    def copy_tree(self, source: Path, dest: Path) -> None:
        shutil.copytree(source, dest)

    def overlay_tree(self, source: Path, dest: Path) -> None:
        shutil.copytree(source, dest, dirs_exist_ok=True)


class Compressor(ABC):
    """Turns a directory into a single archive file."""

    suffix = ".zip"

    @abstractmethod
    def compress(self, source_dir: Path, dest_file: Path) -> None:
        """Write an archive of source_dir to dest_file.

        Raises:
            OSError: On any read or write failure.
        """


class ZipCompressor(Compressor):
    """Deflate-compressed zip with paths relative to the snapshot root."""

    def compress(self, source_dir: Path, dest_file: Path) -> None:
        with zipfile.ZipFile(dest_file, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for item in sorted(source_dir.rglob("*")):
                arcname = item.relative_to(source_dir).as_posix()
                archive.write(item, arcname)
        logger.debug("Compressed %s -> %s", source_dir, dest_file)
