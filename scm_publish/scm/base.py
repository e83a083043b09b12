"""Base SCM backend protocol and helpers shared by the git and svn backends."""

from __future__ import annotations

import logging
import re
from enum import Enum
from pathlib import Path
from typing import List, Optional, Pattern, Protocol, Type

from .. import config as publish_config
from ..errors import AuthenticationError, SCMCommandError, SCMError

logger = logging.getLogger(__name__)

README_NAME = "README.md"

# scheme://user@host/... for schemes that carry a login name
_URL_USER_PATTERN = re.compile(r"^(?P<scheme>[a-z][a-z0-9+.-]*://)(?P<user>[^@/]+)@(?P<rest>.+)$", re.I)
# scp-like git syntax: user@host:path
_SCP_USER_PATTERN = re.compile(r"^(?P<user>[^@/:]+)@(?P<rest>[^/:]+:.*)$")


class MergeFailurePolicy(Enum):
    """How commit_and_push reacts to a remote that has moved on."""

    FAIL = "fail"


class SCMBackend(Protocol):
    """Protocol for SCM publish backends.

    All backends (git, svn) must implement this protocol. An instance is
    bound to one working folder; the only state it persists is the SCM
    metadata directory inside that folder.
    """

    working_folder: Path

    def substitute_url(self, raw_url: str, username: Optional[str]) -> str:
        """Put username into the URL's user placeholder, if it has one.

        Examples:
            ssh://someuser@example.com:29418/repo -> ssh://jdoe@example.com:29418/repo
            https://example.com/repo.git -> unchanged
        """
        ...

    def needs_username(self, url: str) -> bool:
        """True when operations against url need a username."""
        ...

    def needs_password(self, url: str) -> bool:
        """True when operations against url need a password."""
        ...

    def link_and_fetch(self, url: str, username: Optional[str], password: Optional[str]) -> None:
        """Bind the working folder to url and bring it up to date.

        Raises:
            AuthenticationError: If the remote rejects the credentials
            LinkError: If the folder is bound elsewhere or fetching fails
        """
        ...

    def stage_all_untracked(self) -> List[str]:
        """Add files not yet under version control.

        Returns:
            Relative paths that were added
        """
        ...

    def commit_and_push(
        self,
        message: str,
        username: Optional[str],
        password: Optional[str],
        merge_policy: MergeFailurePolicy = MergeFailurePolicy.FAIL,
    ) -> None:
        """Commit every change in the working folder and publish it.

        Raises:
            MergeFailure: If the remote diverged
            AuthenticationError: If the remote rejects the credentials
        """
        ...


def url_scheme(url: str) -> str:
    """Lowercase scheme of url; "scp" for user@host:path, "file" for plain paths."""
    if "://" in url:
        return url.split("://", 1)[0].lower()
    if _SCP_USER_PATTERN.match(url):
        return "scp"
    return "file"


def url_has_user(url: str) -> bool:
    """True when url carries a ``user@`` login part."""
    return bool(_URL_USER_PATTERN.match(url) or _SCP_USER_PATTERN.match(url))


def substitute_url_user(raw_url: str, username: Optional[str], schemes: tuple[str, ...]) -> str:
    """Replace the login part of raw_url with username.

    Only scheme URLs whose scheme is in ``schemes`` are rewritten. An
    scp-like ``user@host:path`` is rewritten when "scp" is in schemes.
    """
    if not username:
        return raw_url

    match = _URL_USER_PATTERN.match(raw_url)
    if match:
        scheme = match.group("scheme")[:-3].lower()
        if scheme in schemes:
            return f"{match.group('scheme')}{username}@{match.group('rest')}"
        return raw_url

    if "scp" in schemes and "://" not in raw_url:
        match = _SCP_USER_PATTERN.match(raw_url)
        if match:
            return f"{username}@{match.group('rest')}"

    return raw_url


def ensure_readme(working_folder: Path, content: Optional[str] = None) -> bool:
    """Write the readme marker into working_folder unless one exists.

    Returns:
        True when the file was created
    """
    readme = working_folder / README_NAME
    if readme.exists():
        return False
    if content is None:
        content = publish_config.scm_publish_readme_content()
    readme.write_text(content.rstrip("\n") + "\n", encoding="utf-8")
    logger.debug("Created %s", readme)
    return True


def translate_command_error(
    exc: SCMCommandError,
    message: str,
    default: Type[SCMError],
    auth_pattern: Pattern[str],
) -> SCMError:
    """Map a failed command onto the backend error taxonomy.

    Authentication failures recognised by auth_pattern become
    AuthenticationError, everything else becomes ``default``.
    """
    text = f"{exc.stderr}\n{exc}"
    if auth_pattern.search(text):
        return AuthenticationError(f"{message}: authentication failed", cause=exc)
    return default(f"{message}: {exc}", cause=exc)
