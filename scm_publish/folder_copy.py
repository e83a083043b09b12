"""Merge-copy a content tree onto a working folder.

Files from the source overwrite their counterparts in the target; anything
else already present in the target is left alone. Nothing is ever deleted.
"""

from __future__ import annotations

import errno
import logging
import os
import shutil
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


def normalize_extensions(values: Optional[Union[str, Iterable[str]]]) -> FrozenSet[str]:
    """Build the lowercase suffix set used for filtering.

    Accepts:
    - None or empty: no filtering
    - Iterable: [".pdf", ".TXT"]
    - String (space or comma separated): ".pdf, .txt"
    """
    if not values:
        return frozenset()
    if isinstance(values, str):
        values = values.replace(",", " ").split()
    return frozenset(value.strip().lower() for value in values if value.strip())


def _matches(name: str, extensions: FrozenSet[str]) -> bool:
    """True when the file name ends with one of the (lowercased) extensions."""
    lowered = name.lower()
    return any(lowered.endswith(ext) for ext in extensions)


def _ensure_directory(target_dir: Path, parents: bool = False) -> bool:
    """Create target_dir.

    Returns:
        True when the directory was created, False when it already existed

    Any failure other than an existing directory propagates.
    """
    try:
        target_dir.mkdir(parents=parents)
    except FileExistsError:
        if not target_dir.is_dir():
            raise
        logger.debug("Directory already exists: %s", target_dir)
        return False
    return True


def _raise_walk_error(exc: OSError) -> None:
    raise exc


def copy_folder(
    source: PathLike,
    target: PathLike,
    include_source_folder_name: bool = False,
    extensions: Optional[Union[str, Iterable[str]]] = None,
) -> int:
    """Copy the files of source into target, merging with existing content.

    The walk is depth-first with directories visited before their contents
    and follows symbolic links. Every directory is recreated under target
    regardless of the filter. A file is copied (overwriting, with its
    timestamps and mode) when no extensions are given or its lowercased
    name ends with one of them.

    Args:
        source: Directory to copy from. Never modified.
        target: Directory to copy into. Created if missing.
        include_source_folder_name: Copy into ``target/<source name>``
            instead of directly into target.
        extensions: Optional case-insensitive file name suffixes.

    Returns:
        Number of files copied. Directories and skipped files do not count.

    Raises:
        NotADirectoryError: If source is not an existing directory
        OSError: If any entry cannot be read or written; the copy stops there
    """
    source = Path(source)
    target = Path(target)

    if not source.is_dir():
        raise NotADirectoryError(errno.ENOTDIR, "Source is not a directory", str(source))

    if include_source_folder_name:
        return copy_folder(source, target / source.name, False, extensions)

    suffixes = normalize_extensions(extensions)
    logger.debug(
        "Copying %s -> %s (extensions=%s)",
        source, target, sorted(suffixes) or "all",
    )

    copied = 0
    # New directories get the source attributes once their files are in,
    # so a read-only source directory does not block its own copy
    created: List[Tuple[Path, Path]] = []
    # Device/inode pairs of each directory's ancestors, for loop detection
    chains: Dict[str, FrozenSet[Tuple[int, int]]] = {}

    for dirpath, dirnames, filenames in os.walk(
        source, followlinks=True, onerror=_raise_walk_error
    ):
        current = Path(dirpath)
        st = current.stat()
        key = (st.st_dev, st.st_ino)
        parent_chain = chains.get(os.path.dirname(dirpath), frozenset())
        if dirpath != str(source) and key in parent_chain:
            raise OSError(errno.ELOOP, "Symbolic link loop", dirpath)
        chains[dirpath] = parent_chain | {key}

        relative = current.relative_to(source)
        destination = target / relative
        if _ensure_directory(destination, parents=(dirpath == str(source))):
            created.append((current, destination))

        dirnames.sort()
        for name in sorted(filenames):
            if suffixes and not _matches(name, suffixes):
                logger.debug("Skipping %s", relative / name)
                continue
            shutil.copy2(current / name, destination / name)
            copied += 1
            logger.debug("Copied %s", relative / name)

    for source_dir, target_dir in reversed(created):
        shutil.copystat(source_dir, target_dir)

    return copied
