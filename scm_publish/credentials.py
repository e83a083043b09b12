"""Username/password resolution for remote SCM operations.

Each credential is resolved independently, first non-empty value wins:

1. process-level override (SCM_PUBLISH_USERNAME / SCM_PUBLISH_PASSWORD)
2. value supplied by the caller
3. console prompt, unless SCM_PUBLISH_NO_PROMPT is set

Resolved values are memoized in a CredentialStore so a build that publishes
several times is only asked once. `get_credential_store()` returns the
store shared by the whole process.
"""

from __future__ import annotations

import getpass
import logging
import sys
import threading
from dataclasses import dataclass, replace
from queue import Empty, Queue
from typing import Any, Callable, Optional, Protocol, TextIO, Tuple

from . import config as publish_config
from .errors import CredentialError, CredentialTimeoutError, MissingCredentialError

logger = logging.getLogger(__name__)

DISABLE_HINT = (
    f"To disable remote publishing during the build, set "
    f"{publish_config.DISABLE_ENV}=true"
)

# The disable hint is printed at most once per process
_hint_given = False
_hint_lock = threading.Lock()


@dataclass
class Credentials:
    """Resolved credential pair; None until resolved."""

    username: Optional[str] = None
    password: Optional[str] = None


class CredentialPrompter(Protocol):
    """Strategy used to ask the user for a missing credential."""

    def prompt(self, message: str, secret: bool = False) -> str:  # pragma: no cover - protocol
        """Show message and return the answer.

        Raises:
            CredentialTimeoutError: If no answer arrives in time
            MissingCredentialError: If input ended without an answer
        """
        ...


def _print_hint_once(stream: TextIO) -> None:
    global _hint_given
    with _hint_lock:
        if _hint_given:
            return
        _hint_given = True
    print(DISABLE_HINT, file=stream, flush=True)


def reset_prompt_hint() -> None:
    """Allow the disable hint to be printed again (useful for testing)."""
    global _hint_given
    with _hint_lock:
        _hint_given = False


def _start_reader(func: Callable[[], str], name: str) -> "Queue[Tuple[bool, Any]]":
    """Run func on a daemon thread; its outcome lands in the returned queue.

    Being a daemon, an unanswered reader never keeps the process alive.
    """
    results: "Queue[Tuple[bool, Any]]" = Queue(maxsize=1)

    def worker() -> None:
        try:
            results.put((True, func()))
        except BaseException as exc:  # relayed to the waiting thread
            results.put((False, exc))

    thread = threading.Thread(target=worker, name=name, daemon=True)
    thread.start()
    return results


def _unwrap(ok: bool, value: Any) -> str:
    """Return a reader's answer or raise its failure as a CredentialError."""
    if ok:
        return value
    if isinstance(value, (KeyboardInterrupt, InterruptedError)):
        raise CredentialTimeoutError("Prompt was interrupted", cause=value)
    if isinstance(value, EOFError):
        raise MissingCredentialError("Input ended before a value was entered", cause=value)
    if isinstance(value, (OSError, ValueError)):
        # ValueError covers undecodable input and reads from a closed stream
        raise CredentialError(f"Error reading from console: {value}", cause=value)
    raise value


class ConsolePrompter:
    """Prompt on stdout and read the answer from stdin.

    Passwords are read with getpass when stdin is a terminal so the input
    is not echoed; otherwise a plain line is read.

    At most one read of stdin is outstanding. When a prompt times out its
    reader stays pending, and the next prompt waits on that same reader, so
    a late answer goes to the next prompt instead of being lost.
    """

    def __init__(
        self,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """Initialize prompter.

        Args:
            stdin: Input stream (sys.stdin at prompt time if None)
            stdout: Output stream (sys.stdout at prompt time if None)
            timeout: Seconds to wait for an answer (config default if None);
                negative values count as 0
        """
        self._stdin = stdin
        self._stdout = stdout
        self.timeout = timeout
        self._pending: "Optional[Queue[Tuple[bool, Any]]]" = None
        self._pending_lock = threading.Lock()

    @property
    def stdin(self) -> TextIO:
        return self._stdin if self._stdin is not None else sys.stdin

    @property
    def stdout(self) -> TextIO:
        return self._stdout if self._stdout is not None else sys.stdout

    def _can_mask(self) -> bool:
        stdin = self.stdin
        return stdin is sys.stdin and stdin.isatty()

    def _read(self, secret: bool) -> str:
        if secret and self._can_mask():
            return getpass.getpass(prompt="", stream=self.stdout)
        line = self.stdin.readline()
        if not line:
            raise EOFError("end of input")
        return line.rstrip("\r\n")

    def prompt(self, message: str, secret: bool = False) -> str:
        timeout = self.timeout
        if timeout is None:
            timeout = publish_config.scm_publish_prompt_timeout()
        timeout = max(timeout, 0)

        _print_hint_once(self.stdout)
        print(message, file=self.stdout, flush=True)

        with self._pending_lock:
            if self._pending is None:
                name = "scm-publish-password-prompt" if secret else "scm-publish-username-prompt"
                self._pending = _start_reader(lambda: self._read(secret), name)
            results = self._pending

        try:
            ok, value = results.get(timeout=timeout)
        except Empty:
            raise CredentialTimeoutError(f"No input received within {timeout:g} seconds")

        with self._pending_lock:
            self._pending = None
        return _unwrap(ok, value)


class CredentialStore:
    """Resolves and memoizes the username/password for remote operations.

    Thread-safe: resolution is serialised by a re-entrant lock, so
    concurrent publishes sharing a store never prompt twice for the same
    value. Failed resolutions cache nothing.

    Example:
        store = CredentialStore(no_prompt=True)
        username = store.resolve_username("GIT", "https://example.com/site.git", "jdoe")
    """

    def __init__(
        self,
        prompter: Optional[CredentialPrompter] = None,
        no_prompt: Optional[bool] = None,
    ) -> None:
        """Initialize store.

        Args:
            prompter: Prompt strategy (ConsolePrompter if None)
            no_prompt: Disable prompting; SCM_PUBLISH_NO_PROMPT is read at
                resolution time if None
        """
        self.prompter = prompter or ConsolePrompter()
        self._no_prompt = no_prompt
        self._credentials = Credentials()
        self._lock = threading.RLock()

    @property
    def credentials(self) -> Credentials:
        """Snapshot of what has been resolved so far."""
        with self._lock:
            return replace(self._credentials)

    def _prompting_disabled(self) -> bool:
        if self._no_prompt is not None:
            return self._no_prompt
        return publish_config.scm_publish_no_prompt()

    def _resolve(
        self,
        field: str,
        override: Callable[[], Optional[str]],
        scm_type: Any,
        scm_url: str,
        supplied: Optional[str],
        secret: bool,
    ) -> str:
        scm_name = getattr(scm_type, "value", scm_type)
        with self._lock:
            cached = getattr(self._credentials, field)
            if cached:
                return cached

            value = override()
            source = "override"
            if not value:
                value = supplied
                source = "parameter"
            if not value:
                if self._prompting_disabled():
                    raise MissingCredentialError(
                        f"No {scm_name} {field} available for {scm_url} and prompting "
                        f"is disabled ({publish_config.NO_PROMPT_ENV})"
                    )
                value = self.prompter.prompt(
                    f"Enter the {scm_name} {field} for the remote store ({scm_url}):",
                    secret=secret,
                )
                source = "prompt"
                if not value:
                    raise MissingCredentialError(f"No {scm_name} {field} entered for {scm_url}")

            setattr(self._credentials, field, value)
            logger.debug("Resolved %s %s from %s", scm_name, field, source)
            return value

    def resolve_username(self, scm_type: Any, scm_url: str, supplied: Optional[str] = None) -> str:
        """Resolve the username for scm_url.

        Raises:
            MissingCredentialError: If nothing is available and prompting is off
            CredentialTimeoutError: If the prompt was not answered in time
        """
        return self._resolve(
            "username", publish_config.scm_publish_username, scm_type, scm_url, supplied, False
        )

    def resolve_password(self, scm_type: Any, scm_url: str, supplied: Optional[str] = None) -> str:
        """Resolve the password for scm_url. Same rules as resolve_username."""
        return self._resolve(
            "password", publish_config.scm_publish_password, scm_type, scm_url, supplied, True
        )

    def clear(self) -> None:
        """Forget resolved credentials."""
        with self._lock:
            self._credentials = Credentials()


# Process-wide store (created on first use)
_default_store: Optional[CredentialStore] = None
_store_lock = threading.Lock()


def get_credential_store() -> CredentialStore:
    """Get the credential store shared by every publish in this process."""
    global _default_store
    with _store_lock:
        if _default_store is None:
            _default_store = CredentialStore()
        return _default_store


def reset_credential_store() -> None:
    """Drop the process-wide store (useful for testing)."""
    global _default_store
    with _store_lock:
        _default_store = None
