"""Exception hierarchy for scm-publish.

File-system failures are reported with the built-in ``OSError`` family and
are not redeclared here.
"""

from __future__ import annotations

from typing import Optional


class SCMPublishError(RuntimeError):
    """Base class for all scm-publish failures."""

    def __init__(self, message: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.__cause__ = cause


class ConfigurationError(SCMPublishError):
    """Raised for missing or invalid publish configuration."""


class UnsupportedSCMTypeError(ConfigurationError):
    """Raised when the configured SCM type is neither GIT nor SVN."""


class CredentialError(SCMPublishError):
    """Raised when a username or password cannot be resolved."""


class MissingCredentialError(CredentialError):
    """No credential was available and prompting is disabled or was declined."""


class CredentialTimeoutError(CredentialError):
    """The interactive prompt did not complete in time."""


class SCMError(SCMPublishError):
    """Raised by SCM backends for remote or working copy failures."""


class SCMCommandError(SCMError):
    """A git/svn command exited non-zero or could not be started."""

    def __init__(
        self,
        message: str,
        *,
        exit_code: Optional[int] = None,
        stderr: str = "",
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.exit_code = exit_code
        self.stderr = stderr


class AuthenticationError(SCMError):
    """The remote rejected the supplied credentials."""


class LinkError(SCMError):
    """The working folder could not be linked to, or fetched from, the remote."""


class MergeFailure(SCMError):
    """The remote diverged from the working folder and the policy is fail-fast."""


class PublishError(SCMPublishError):
    """Single terminal failure reported for a publish run.

    ``step`` names the publish step that failed; the original error is
    available as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        *,
        step: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.step = step
