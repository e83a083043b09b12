"""Git publish backend implementation."""

from __future__ import annotations

import base64
import logging
import re
from pathlib import Path
from typing import List, Optional, Tuple

from .. import config as publish_config
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

REMOTE = "origin"

_HTTP_SCHEMES = ("http", "https")
_SSH_SCHEMES = ("ssh", "git+ssh", "ssh+git", "scp")

_AUTH_FAILURE = re.compile(
    r"authentication failed"
    r"|could not read (username|password)"
    r"|invalid username or password"
    r"|permission denied \(publickey"
    r"|returned error: 40[13]"
    r"|HTTP Basic: Access denied",
    re.I,
)
_PUSH_REJECTED = re.compile(r"\[rejected\]|non-fast-forward|fetch first", re.I)
_SYMREF = re.compile(r"^ref:\s+refs/heads/(?P<branch>\S+)\s+HEAD$", re.M)


class GitBackend:
    """Git publish backend.

    Drives the ``git`` executable inside the working folder. HTTP(S)
    credentials are handed to each network command as an Authorization
    header and never stored in the repository configuration.
    """

    def __init__(
        self,
        working_folder: Path,
        sink: Optional[CommandLogSink] = None,
        readme_content: Optional[str] = None,
    ):
        """Initialize git backend.

        Args:
            working_folder: Folder to use as the clone
            sink: Optional sink for raw command output
            readme_content: Readme marker text (config default if None)
        """
        self.working_folder = Path(working_folder)
        self.sink = sink
        self.readme_content = readme_content
        self.branch: Optional[str] = None
        self.url: Optional[str] = None

    def substitute_url(self, raw_url: str, username: Optional[str]) -> str:
        return substitute_url_user(raw_url, username, _SSH_SCHEMES)

    def needs_username(self, url: str) -> bool:
        scheme = url_scheme(url)
        if scheme in _HTTP_SCHEMES:
            return True
        if scheme in _SSH_SCHEMES:
            return url_has_user(url)
        return False

    def needs_password(self, url: str) -> bool:
        # ssh transports authenticate with keys
        return url_scheme(url) in _HTTP_SCHEMES

    def _auth(
        self, url: Optional[str], username: Optional[str], password: Optional[str]
    ) -> Optional[Tuple[str, str]]:
        if url and username and password and url_scheme(url) in _HTTP_SCHEMES:
            return (username, password)
        return None

    def _git(
        self,
        *args: str,
        auth: Optional[Tuple[str, str]] = None,
        check: bool = True,
    ) -> CommandResult:
        command = ["git"]
        secrets: Tuple[str, ...] = ()
        if auth:
            token = base64.b64encode(f"{auth[0]}:{auth[1]}".encode("utf-8")).decode("ascii")
            command += ["-c", f"http.extraHeader=Authorization: Basic {token}"]
            secrets = (token, auth[1])
        command += list(args)
        return run_scm_command(
            command, self.working_folder, sink=self.sink, check=check, secrets=secrets
        )

    def _has_ref(self, ref: str) -> bool:
        result = self._git("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}", check=False)
        return result.ok

    def _remote_branch(self, auth: Optional[Tuple[str, str]]) -> str:
        """Branch the remote HEAD points to, config default for an empty remote."""
        result = self._git("ls-remote", "--symref", REMOTE, "HEAD", auth=auth)
        match = _SYMREF.search(result.stdout)
        if match:
            return match.group("branch")
        branch = publish_config.scm_publish_git_branch()
        logger.debug("Remote has no HEAD, using branch %s", branch)
        return branch

    def _current_branch(self) -> str:
        result = self._git("symbolic-ref", "--quiet", "--short", "HEAD", check=False)
        if result.ok and result.stdout.strip():
            return result.stdout.strip()
        return publish_config.scm_publish_git_branch()

    def link_and_fetch(self, url: str, username: Optional[str], password: Optional[str]) -> None:
        """Make the working folder a clone of url and update it.

        Files already in the working folder are kept: a fresh clone only
        moves the index to the remote branch and restores tracked files that
        are missing on disk.
        """
        logger.info("Linking git working folder %s to %s", self.working_folder, url)
        auth = self._auth(url, username, password)

        try:
            if (self.working_folder / ".git").exists():
                current = self._git("remote", "get-url", REMOTE, check=False)
                if not current.ok:
                    self._git("remote", "add", REMOTE, url)
                elif current.stdout.strip() != url:
                    raise LinkError(
                        f"{self.working_folder} is already linked to "
                        f"{current.stdout.strip()}, refusing to relink to {url}"
                    )
            else:
                self._git("init", "--quiet")
                self._git("remote", "add", REMOTE, url)

            branch = self._remote_branch(auth)
            self._git("fetch", "--quiet", REMOTE, auth=auth)
            remote_ref = f"refs/remotes/{REMOTE}/{branch}"

            if not self._has_ref("HEAD"):
                self._git("symbolic-ref", "HEAD", f"refs/heads/{branch}")
                if self._has_ref(remote_ref):
                    self._git("update-ref", f"refs/heads/{branch}", remote_ref)
                    self._git("reset", "--quiet")
                    self._restore_missing()
            elif self._has_ref(remote_ref):
                self._git("merge", "--ff-only", "--quiet", remote_ref)
        except SCMCommandError as exc:
            raise translate_command_error(
                exc, f"Failed to link {self.working_folder} to {url}", LinkError, _AUTH_FAILURE
            )

        self.branch = branch
        self.url = url
        if ensure_readme(self.working_folder, self.readme_content):
            logger.info("Created readme in %s", self.working_folder)

    def _restore_missing(self) -> None:
        result = self._git("ls-files", "--deleted", "-z")
        missing = [path for path in result.stdout.split("\0") if path]
        if missing:
            logger.debug("Restoring %d tracked files", len(missing))
            self._git("checkout", "--", *missing)

    def stage_all_untracked(self) -> List[str]:
        result = self._git("ls-files", "--others", "--exclude-standard", "-z")
        untracked = [path for path in result.stdout.split("\0") if path]
        if untracked:
            self._git("add", "--", *untracked)
        logger.info("Staged %d new files", len(untracked))
        return untracked

    def commit_and_push(
        self,
        message: str,
        username: Optional[str],
        password: Optional[str],
        merge_policy: MergeFailurePolicy = MergeFailurePolicy.FAIL,
    ) -> None:
        """Commit all changes and push them to the remote branch.

        The push only happens when the remote branch is an ancestor of the
        local commit; otherwise MergeFailure is raised and the working
        folder is left for manual resolution.
        """
        if merge_policy is not MergeFailurePolicy.FAIL:
            raise ValueError(f"Unsupported merge failure policy: {merge_policy}")

        url = self.url
        if url is None:
            url = self._git("remote", "get-url", REMOTE).stdout.strip()
        branch = self.branch or self._current_branch()
        auth = self._auth(url, username, password)

        status = self._git("status", "--porcelain")
        if status.stdout.strip():
            self._git("commit", "--quiet", "-a", "-m", message)
            logger.info("Committed changes in %s", self.working_folder)
        else:
            logger.info("Nothing to commit in %s", self.working_folder)

        if not self._has_ref("HEAD"):
            logger.info("No commits to push")
            return

        try:
            self._git("fetch", "--quiet", REMOTE, auth=auth)
        except SCMCommandError as exc:
            raise translate_command_error(
                exc, f"Failed to fetch from {url}", SCMError, _AUTH_FAILURE
            )

        remote_ref = f"refs/remotes/{REMOTE}/{branch}"
        if self._has_ref(remote_ref):
            ancestor = self._git("merge-base", "--is-ancestor", remote_ref, "HEAD", check=False)
            if ancestor.exit_code == 1:
                raise MergeFailure(
                    f"Remote branch {branch} of {url} has diverged from "
                    f"{self.working_folder}; resolve manually"
                )
            if not ancestor.ok:
                raise SCMError(f"Failed to compare HEAD with {remote_ref}: {ancestor.stderr.strip()}")

        try:
            self._git("push", "--quiet", REMOTE, f"HEAD:refs/heads/{branch}", auth=auth)
        except SCMCommandError as exc:
            if _PUSH_REJECTED.search(exc.stderr):
                raise MergeFailure(f"Push to {url} rejected: remote has new commits", cause=exc)
            raise translate_command_error(exc, f"Failed to push to {url}", SCMError, _AUTH_FAILURE)
        logger.info("Pushed %s to %s", branch, url)
