"""Publish a content folder into a remote git or svn repository.

A publish run moves through these states, strictly in order:

    INIT -> WORKING_FOLDER_READY -> LINKED -> CONTENT_COPIED -> STAGED -> COMMITTED

Any failure, expected or not, ends the run in FAILED with a single
PublishError naming the step. Nothing is retried or rolled back; pushing
is the last step so a failed run never leaves partial content on the
remote.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from . import config as publish_config
from .credentials import CredentialStore, get_credential_store
from .errors import ConfigurationError, PublishError
from .folder_copy import copy_folder
from .request import PublishRequest, SCMType
from .scm import MergeFailurePolicy, SCMBackend, get_scm_backend
from .scm.logging import CommandLogSink, FileCommandLogSink

logger = logging.getLogger(__name__)


class PublishState(Enum):
    INIT = "init"
    WORKING_FOLDER_READY = "working_folder_ready"
    LINKED = "linked"
    CONTENT_COPIED = "content_copied"
    STAGED = "staged"
    COMMITTED = "committed"
    FAILED = "failed"
    SKIPPED = "skipped"


BackendFactory = Callable[[SCMType, Path, Optional[CommandLogSink]], SCMBackend]


class SCMPublisher:
    """Sequences link, copy, stage and commit-and-push for one request.

    Example:
        publisher = SCMPublisher()
        count = publisher.publish(PublishRequest(
            working_folder=Path("target/scmPublish"),
            content_folder=Path("target/site"),
            scm_type="GIT",
            scm_url="https://example.com/site.git",
        ))
    """

    def __init__(
        self,
        credential_store: Optional[CredentialStore] = None,
        backend_factory: Optional[BackendFactory] = None,
        sink: Optional[CommandLogSink] = None,
    ) -> None:
        """Initialize publisher.

        Args:
            credential_store: Store used to resolve credentials (process-wide
                store if None)
            backend_factory: Builds the SCM backend (get_scm_backend if None)
            sink: Sink for raw git/svn output (file from config if None)
        """
        self.credential_store = credential_store or get_credential_store()
        self.backend_factory = backend_factory or get_scm_backend
        self.sink = sink
        self.state = PublishState.INIT

    def _fail(self, step: str, message: str, exc: BaseException) -> PublishError:
        self.state = PublishState.FAILED
        logger.error("SCM publish failed during %s: %s", step, exc)
        return PublishError(f"Failed to {step} {message}: {exc}", step=step, cause=exc)

    def _validate(self, request: PublishRequest) -> None:
        missing = [
            name
            for name in ("working_folder", "content_folder", "scm_type", "scm_url")
            if not getattr(request, name)
        ]
        if missing:
            raise ConfigurationError(f"Missing required publish settings: {', '.join(missing)}")

    def publish(self, request: PublishRequest) -> int:
        """Publish request.content_folder to request.scm_url.

        Returns:
            Number of files copied into the working folder (0 when publishing
            is disabled)

        Raises:
            PublishError: If any step fails; the original error is __cause__
        """
        self.state = PublishState.INIT

        if publish_config.scm_publish_disabled():
            logger.info(
                "SCM publish disabled by %s, skipping", publish_config.DISABLE_ENV
            )
            self.state = PublishState.SKIPPED
            return 0

        try:
            self._validate(request)
        except ConfigurationError as exc:
            raise self._fail("validate", "publish request", exc)

        working_folder = request.working_folder
        logger.info("Configuring %s for SCM management", working_folder.absolute())
        try:
            working_folder.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise self._fail("create", f"working folder {working_folder}", exc)
        self.state = PublishState.WORKING_FOLDER_READY

        sink = self.sink
        owned_sink = None
        if sink is None:
            log_file = publish_config.scm_publish_log_file()
            sink = owned_sink = FileCommandLogSink(
                log_file_path=Path(log_file) if log_file else None
            )

        try:
            return self._run(request, sink)
        finally:
            if owned_sink is not None:
                owned_sink.close()

    def _run(self, request: PublishRequest, sink: CommandLogSink) -> int:
        working_folder = request.working_folder
        store = self.credential_store
        username = password = None

        try:
            scm_type = SCMType.parse(request.scm_type)
            backend = self.backend_factory(scm_type, working_folder, sink)
            if backend.needs_username(request.scm_url):
                username = store.resolve_username(scm_type, request.scm_url, request.username)
            url = backend.substitute_url(request.scm_url, username)
            if backend.needs_password(url):
                password = store.resolve_password(scm_type, request.scm_url, request.password)
            backend.link_and_fetch(url, username, password)
        except Exception as exc:
            raise self._fail("link", f"{working_folder} to {request.scm_url}", exc)
        self.state = PublishState.LINKED

        logger.info("Copying contents from %s", request.content_folder.absolute())
        try:
            copied = copy_folder(
                request.content_folder,
                working_folder,
                include_source_folder_name=False,
                extensions=request.extension_filter,
            )
        except Exception as exc:
            raise self._fail("copy", f"{request.content_folder} into {working_folder}", exc)
        logger.info("Copied %d files", copied)
        self.state = PublishState.CONTENT_COPIED

        logger.info("Pushing new content")
        try:
            backend.stage_all_untracked()
        except Exception as exc:
            raise self._fail("stage", f"new files in {working_folder}", exc)
        self.state = PublishState.STAGED

        message = request.commit_message or publish_config.scm_publish_commit_message()
        try:
            backend.commit_and_push(message, username, password, MergeFailurePolicy.FAIL)
        except Exception as exc:
            raise self._fail("commit and push", f"{working_folder} to {url}", exc)
        self.state = PublishState.COMMITTED

        logger.info("SCM publish complete")
        return copied


def publish(request: PublishRequest, credential_store: Optional[CredentialStore] = None) -> int:
    """Publish request with a new SCMPublisher; see SCMPublisher.publish."""
    return SCMPublisher(credential_store=credential_store).publish(request)
