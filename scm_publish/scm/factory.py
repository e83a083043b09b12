"""Backend selection from the configured SCM type."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

from ..request import SCMType
from .base import SCMBackend
from .git import GitBackend
from .logging import CommandLogSink
from .svn import SVNBackend

_BACKENDS = {
    SCMType.GIT: GitBackend,
    SCMType.SVN: SVNBackend,
}


def get_scm_backend(
    scm_type: Union[str, SCMType],
    working_folder: Path,
    sink: Optional[CommandLogSink] = None,
) -> SCMBackend:
    """Factory function to get the backend for an SCM type.

    Args:
        scm_type: "GIT" or "SVN" in any case, or an SCMType
        working_folder: Folder the backend operates on
        sink: Optional sink for raw command output

    Returns:
        Backend instance bound to working_folder

    Raises:
        UnsupportedSCMTypeError: If scm_type is not recognised

    Example:
        backend = get_scm_backend("git", Path("target/scmPublish"))
        backend.link_and_fetch("https://example.com/site.git", "jdoe", "secret")
    """
    if not isinstance(scm_type, SCMType):
        scm_type = SCMType.parse(scm_type)
    return _BACKENDS[scm_type](Path(working_folder), sink=sink)
