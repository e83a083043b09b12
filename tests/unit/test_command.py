"""Unit tests for the SCM command runner and log sink."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from scm_publish.errors import SCMCommandError
from scm_publish.scm.command import REDACTED, redact, run_scm_command
from scm_publish.scm.logging import FileCommandLogSink


def _python(code):
    return [sys.executable, "-c", code]


class TestRedact:
    def test_replaces_every_secret(self):
        assert redact("user:pw pw token", ["pw", "token"]) == (
            f"user:{REDACTED} {REDACTED} {REDACTED}"
        )

    def test_ignores_empty_secrets(self):
        assert redact("abc", ["", None]) == "abc"


class TestRunSCMCommand:
    """Test run_scm_command."""

    def test_success(self, tmp_path):
        result = run_scm_command(_python("print('hello')"), tmp_path)
        assert result.ok
        assert result.exit_code == 0
        assert result.stdout.strip() == "hello"

    def test_runs_in_cwd(self, tmp_path):
        result = run_scm_command(_python("import os; print(os.getcwd())"), tmp_path)
        assert Path(result.stdout.strip()).resolve() == tmp_path.resolve()

    def test_secrets_redacted(self, tmp_path):
        """Secrets never appear in the command, output or sink."""
        sink = MagicMock()
        result = run_scm_command(
            _python("import sys; print(sys.argv[1]); print('err ' + sys.argv[1], file=sys.stderr)")
            + ["s3cret"],
            tmp_path,
            sink=sink,
            secrets=("s3cret",),
        )

        assert "s3cret" not in result.stdout
        assert "s3cret" not in result.stderr
        assert REDACTED in result.stdout
        assert result.command[-1] == REDACTED
        sink.write_stdout.assert_called_once_with(result.stdout)
        sink.write_stderr.assert_called_once_with(result.stderr)

    def test_failure_raises(self, tmp_path):
        command = _python(
            "import sys; print('first', file=sys.stderr); "
            "print('fatal: bad s3cret', file=sys.stderr); sys.exit(3)"
        )
        with pytest.raises(SCMCommandError) as excinfo:
            run_scm_command(command, tmp_path, secrets=("s3cret",))

        error = excinfo.value
        assert error.exit_code == 3
        assert "exit code 3" in str(error)
        assert "fatal: bad" in str(error)
        assert "s3cret" not in str(error)
        assert "s3cret" not in error.stderr
        assert "first" in error.stderr

    def test_failure_without_check(self, tmp_path):
        result = run_scm_command(_python("import sys; sys.exit(1)"), tmp_path, check=False)
        assert not result.ok
        assert result.exit_code == 1

    def test_missing_executable(self, tmp_path):
        with pytest.raises(SCMCommandError) as excinfo:
            run_scm_command(["scm-publish-no-such-tool", "status"], tmp_path)
        assert excinfo.value.exit_code is None
        assert isinstance(excinfo.value.__cause__, OSError)

    def test_never_prompts(self, tmp_path):
        """Commands get no stdin and terminal prompting is switched off."""
        result = run_scm_command(
            _python(
                "import os, sys; print(repr(sys.stdin.read())); "
                "print(os.environ['GIT_TERMINAL_PROMPT'])"
            ),
            tmp_path,
        )
        assert result.stdout.split() == ["''", "0"]

    def test_extra_env(self, tmp_path):
        result = run_scm_command(
            _python("import os; print(os.environ['PUBLISH_TEST'])"),
            tmp_path,
            env={"PUBLISH_TEST": "yes"},
        )
        assert result.stdout.strip() == "yes"


class TestFileCommandLogSink:
    """Test FileCommandLogSink class."""

    def test_logs_lines(self, caplog):
        command_logger = logging.getLogger("test.scm.output")
        sink = FileCommandLogSink(command_logger=command_logger)

        with caplog.at_level(logging.DEBUG, logger="test.scm.output"):
            sink.write_stdout("out one\n\nout two\n")
            sink.write_stderr("progress\n")

        records = [(r.levelno, r.getMessage()) for r in caplog.records]
        assert records == [
            (logging.DEBUG, "out one"),
            (logging.DEBUG, "out two"),
            (logging.INFO, "progress"),
        ]

    def test_appends_to_file(self, tmp_path):
        log_file = tmp_path / "logs" / "scm.log"
        log_file.parent.mkdir()
        log_file.write_text("earlier\n")

        with FileCommandLogSink(log_file_path=log_file) as sink:
            sink.write_stdout("line")
            sink.write_stderr("")
            sink.write_stderr("warning\n")

        assert log_file.read_text() == "earlier\nline\nwarning\n"
        assert sink._file_handle is None

    def test_creates_parent_directory(self, tmp_path):
        log_file = tmp_path / "nested" / "dir" / "scm.log"
        sink = FileCommandLogSink(log_file_path=log_file)
        sink.write_stdout("x\n")
        sink.close()
        assert log_file.read_text() == "x\n"

    def test_unopenable_file_falls_back_to_logger(self, tmp_path, caplog):
        blocker = tmp_path / "blocker"
        blocker.write_text("")

        with caplog.at_level(logging.WARNING):
            sink = FileCommandLogSink(log_file_path=blocker / "scm.log")
        assert sink._file_handle is None
        assert "Failed to open log file" in caplog.text

        sink.write_stdout("still logged\n")
        sink.close()


def test_input_fed_to_stdin(tmp_path):
    """Text passed as input reaches the command's stdin and not its arguments."""
    result = run_scm_command(
        _python("import sys; print(sys.stdin.readline().strip() == 's3cret')"),
        tmp_path,
        input="s3cret\n",
        secrets=("s3cret",),
    )
    assert result.stdout.strip() == "True"
    assert "s3cret" not in " ".join(result.command)
