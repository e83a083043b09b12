"""Subversion publish backend implementation."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Optional

from ..errors import LinkError, MergeFailure, SCMCommandError, SCMError
from .base import (
    MergeFailurePolicy,
    ensure_readme,
    substitute_url_user,
    translate_command_error,
    url_has_user,
    url_scheme,
)
from .command import CommandResult, run_scm_command
from .logging import CommandLogSink

logger = logging.getLogger(__name__)

_PASSWORD_SCHEMES = ("http", "https", "svn")
_SSH_SCHEMES = ("svn+ssh",)

_AUTH_FAILURE = re.compile(
    r"E170001|E215004|authentication failed|authorization failed|no more credentials",
    re.I,
)
_OUT_OF_DATE = re.compile(
    r"E155011|E160024|E160028|E170004|out[ -]of[ -]date",
    re.I,
)


def _peg_safe(path: str) -> str:
    # svn reads "name@rev" as a peg revision; a trailing @ escapes it
    return f"{path}@" if "@" in path else path


class SVNBackend:
    """Subversion publish backend.

    Drives the ``svn`` executable. Every command runs non-interactively and
    never caches credentials; committing is also publishing.
    """

    def __init__(
        self,
        working_folder: Path,
        sink: Optional[CommandLogSink] = None,
        readme_content: Optional[str] = None,
    ):
        self.working_folder = Path(working_folder)
        self.sink = sink
        self.readme_content = readme_content
        self.url: Optional[str] = None

    def substitute_url(self, raw_url: str, username: Optional[str]) -> str:
        return substitute_url_user(raw_url, username, _SSH_SCHEMES)

    def needs_username(self, url: str) -> bool:
        scheme = url_scheme(url)
        if scheme in _PASSWORD_SCHEMES:
            return True
        if scheme in _SSH_SCHEMES:
            return url_has_user(url)
        return False

    def needs_password(self, url: str) -> bool:
        return url_scheme(url) in _PASSWORD_SCHEMES

    def _svn(
        self,
        *args: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        check: bool = True,
    ) -> CommandResult:
        command = ["svn", *args, "--non-interactive", "--no-auth-cache"]
        if username:
            command += ["--username", username]
        if password:
            # password goes on stdin, never in argv (svn 1.10+)
            command.append("--password-from-stdin")
        return run_scm_command(
            command,
            self.working_folder,
            sink=self.sink,
            check=check,
            secrets=(password,) if password else (),
            input=f"{password}\n" if password else None,
        )

    def link_and_fetch(self, url: str, username: Optional[str], password: Optional[str]) -> None:
        """Check url out into the working folder, or update an existing checkout.

        A new checkout is forced over whatever the folder already holds, so
        unversioned files there are kept and become local modifications.
        """
        logger.info("Linking svn working folder %s to %s", self.working_folder, url)
        try:
            if (self.working_folder / ".svn").exists():
                current = self._svn("info", "--show-item", "url").stdout.strip()
                if current.rstrip("/") != url.rstrip("/"):
                    raise LinkError(
                        f"{self.working_folder} is already linked to {current}, "
                        f"refusing to relink to {url}"
                    )
                self._svn("update", "--quiet", username=username, password=password)
            else:
                self._svn(
                    "checkout", "--quiet", "--force", url, ".",
                    username=username, password=password,
                )
        except SCMCommandError as exc:
            raise translate_command_error(
                exc, f"Failed to link {self.working_folder} to {url}", LinkError, _AUTH_FAILURE
            )

        self.url = url
        if ensure_readme(self.working_folder, self.readme_content):
            logger.info("Created readme in %s", self.working_folder)

    def stage_all_untracked(self) -> List[str]:
        result = self._svn("status")
        untracked = [
            line[1:].strip()
            for line in result.stdout.splitlines()
            if line.startswith("?")
        ]
        if untracked:
            self._svn("add", "--quiet", *(_peg_safe(path) for path in untracked))
        logger.info("Staged %d new files", len(untracked))
        return untracked

    def commit_and_push(
        self,
        message: str,
        username: Optional[str],
        password: Optional[str],
        merge_policy: MergeFailurePolicy = MergeFailurePolicy.FAIL,
    ) -> None:
        """Commit all changes to the repository.

        An out-of-date working copy raises MergeFailure; no update is
        attempted.
        """
        if merge_policy is not MergeFailurePolicy.FAIL:
            raise ValueError(f"Unsupported merge failure policy: {merge_policy}")

        url = self.url or str(self.working_folder)
        status = self._svn("status", "--quiet")
        if not status.stdout.strip():
            logger.info("Nothing to commit in %s", self.working_folder)
            return

        try:
            self._svn("commit", "--quiet", "-m", message, username=username, password=password)
        except SCMCommandError as exc:
            if _OUT_OF_DATE.search(exc.stderr):
                raise MergeFailure(
                    f"Working copy {self.working_folder} is out of date with {url}; "
                    "resolve manually",
                    cause=exc,
                )
            raise translate_command_error(exc, f"Failed to commit to {url}", SCMError, _AUTH_FAILURE)
        logger.info("Committed changes to %s", url)
