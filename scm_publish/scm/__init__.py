"""SCM backends used to link, stage, commit and push a working folder.

Provides a protocol-based abstraction with git and svn implementations.
"""

from .base import MergeFailurePolicy, SCMBackend
from .factory import get_scm_backend
from .git import GitBackend
from .logging import CommandLogSink, FileCommandLogSink
from .svn import SVNBackend

__all__ = [
    "CommandLogSink",
    "FileCommandLogSink",
    "GitBackend",
    "MergeFailurePolicy",
    "SCMBackend",
    "SVNBackend",
    "get_scm_backend",
]
