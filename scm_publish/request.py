from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import FrozenSet, Optional

from .errors import UnsupportedSCMTypeError
from .folder_copy import normalize_extensions


class SCMType(Enum):
    """Version control systems a working folder can be published to."""

    GIT = "GIT"
    SVN = "SVN"

    @classmethod
    def parse(cls, value: str) -> "SCMType":
        """Match a configured SCM type case-insensitively.

        Raises:
            UnsupportedSCMTypeError: If value is not GIT or SVN
        """
        normalized = (value or "").strip().upper()
        for member in cls:
            if member.value == normalized:
                return member
        raise UnsupportedSCMTypeError(f"Unsupported SCM type: {value!r}")


@dataclass(frozen=True)
class PublishRequest:
    """Inputs of a single publish run.

    - working_folder: checkout/clone that receives the content and is pushed
    - content_folder: source tree to publish, never modified
    - extension_filter: case-insensitive file name suffixes, given as an
      iterable or a comma/space separated string; empty copies all
    - commit_message: message for the commit, config default when None
    - scm_type: raw configured type, "GIT" or "SVN" in any case
    - scm_url: remote repository URL
    - username/password: caller-supplied credentials, below process overrides
    """

    working_folder: Path
    content_folder: Path
    scm_type: str
    scm_url: str
    extension_filter: FrozenSet[str] = field(default_factory=frozenset)
    commit_message: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None

    def __post_init__(self) -> None:
        # Accept str paths and any form of extension list from callers;
        # empty paths are kept as-is so the publisher can reject them
        for name in ("working_folder", "content_folder"):
            value = getattr(self, name)
            if value:
                object.__setattr__(self, name, Path(value))
        object.__setattr__(self, "extension_filter", normalize_extensions(self.extension_filter))
