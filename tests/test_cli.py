"""Tests for the command-line interface."""

import io
import json
import logging

import pytest

from shellwise import __version__, cli
from shellwise.agent import AgentState
from shellwise.errors import ModelError
from shellwise.models import Model

DONE = '```bash\necho "TASK_COMPLETE"\necho "Summary: X"\n```'


class ScriptedModel(Model):
    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def query(self, messages, ctx):
        self.calls.append(list(messages))
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, BaseException):
            raise reply
        return reply


class TTY(io.StringIO):
    def isatty(self):
        return True


@pytest.fixture(autouse=True)
def environment(monkeypatch, tmp_path):
    for name in ("SHELLWISE_CONFIG_FILE", "SHELLWISE_MAX_STEPS", "SHELLWISE_WORKING_DIR", "SHELLWISE_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    monkeypatch.setattr("sys.stdin", TTY())
    monkeypatch.chdir(tmp_path)

    logger = logging.getLogger("shellwise")
    saved = (logger.handlers[:], logger.level, logger.propagate)
    yield
    logger.handlers, logger.level, logger.propagate = saved


@pytest.fixture
def model(monkeypatch):
    scripted = ScriptedModel(DONE)
    monkeypatch.setattr(cli, "create_model", lambda settings: scripted)
    return scripted


def run(*args):
    return cli.main(["run", *args])


class TestRunCommand:
    """Tests for `shellwise run`."""

    def test_success(self, model, capsys):
        """Test a completed task prints the commands and the summary."""
        code = run("Say done")

        out = capsys.readouterr().out
        assert code == cli.EXIT_SUCCESS
        assert '$ echo "TASK_COMPLETE"' in out
        assert out.rstrip().endswith("Summary: X")
        assert model.calls[0][1].content == "Say done"

    def test_quiet_prints_nothing(self, model, capsys):
        assert run("Say done", "-q") == cli.EXIT_SUCCESS
        assert capsys.readouterr().out == ""

    def test_json_output(self, model, capsys):
        """Test --json prints a single JSON document."""
        code = run("Say done", "--json")

        payload = json.loads(capsys.readouterr().out)
        assert code == cli.EXIT_SUCCESS
        assert payload == {
            "success": True,
            "task": "Say done",
            "reason": "complete",
            "response": "Summary: X",
            "error": None,
        }

    def test_task_from_stdin(self, model, monkeypatch):
        monkeypatch.setattr("sys.stdin", io.StringIO("  Piped task\n"))

        assert run("-") == cli.EXIT_SUCCESS
        assert model.calls[0][1].content == "Piped task"

    def test_user_prompt_template(self, model, tmp_path):
        (tmp_path / "config.toml").write_text('user_prompt = "Repo task: {task}"\n')

        run("list files", "--config-dir", str(tmp_path))

        assert model.calls[0][1].content == "Repo task: list files"

    def test_step_limit_still_succeeds(self, monkeypatch, capsys):
        """Test hitting the step limit exits 0 with a note on stderr."""
        reply = "```bash\ntrue\n```"
        monkeypatch.setattr(cli, "create_model", lambda settings: ScriptedModel(reply))

        code = run("Loop", "--max-steps", "2")

        captured = capsys.readouterr()
        assert code == cli.EXIT_SUCCESS
        assert "Step limit reached (2 steps)" in captured.err
        assert captured.out.rstrip().endswith(reply)

    def test_commands_run_in_cwd(self, monkeypatch, tmp_path):
        workdir = tmp_path / "work"
        workdir.mkdir()
        reply = '```bash\ntouch made.txt; echo "TASK_COMPLETE"\n```'
        monkeypatch.setattr(cli, "create_model", lambda settings: ScriptedModel(reply))

        assert run("Make a file", "--cwd", str(workdir), "-q") == cli.EXIT_SUCCESS
        assert (workdir / "made.txt").exists()


class TestRunErrors:
    """Tests for exit codes on failure."""

    def test_no_subcommand(self, capsys):
        assert cli.main([]) == cli.EXIT_MISUSE

    def test_no_task(self, model, capsys):
        assert run() == cli.EXIT_MISUSE
        assert "no task provided" in capsys.readouterr().err

    def test_verbose_and_quiet(self, model, capsys):
        assert run("Task", "-v", "-q") == cli.EXIT_MISUSE
        assert "cannot be used together" in capsys.readouterr().err

    def test_missing_api_key(self, model, monkeypatch, capsys):
        monkeypatch.delenv("ANTHROPIC_API_KEY")
        monkeypatch.delenv("SHELLWISE_API_KEY", raising=False)

        assert run("Task") == cli.EXIT_MISUSE
        assert "API key not configured" in capsys.readouterr().err
        assert model.calls == []

    def test_missing_api_key_json(self, model, monkeypatch, capsys):
        monkeypatch.delenv("ANTHROPIC_API_KEY")
        monkeypatch.delenv("SHELLWISE_API_KEY", raising=False)

        assert run("Task", "--json") == cli.EXIT_MISUSE
        payload = json.loads(capsys.readouterr().out)
        assert payload["success"] is False
        assert "ANTHROPIC_API_KEY" in payload["error"]

    def test_invalid_timeout(self, model, capsys):
        assert run("Task", "--timeout", "soon") == cli.EXIT_MISUSE
        assert "invalid --timeout" in capsys.readouterr().err

    def test_invalid_blocklist_pattern(self, model, tmp_path, capsys):
        (tmp_path / "config.toml").write_text("blocked_patterns = ['(unclosed']\n")

        assert run("Task", "--config-dir", str(tmp_path)) == cli.EXIT_MISUSE

    def test_model_error(self, monkeypatch, capsys):
        failing = ScriptedModel(ModelError("failed to generate content: overloaded"))
        monkeypatch.setattr(cli, "create_model", lambda settings: failing)

        assert run("Task") == cli.EXIT_ERROR
        assert "overloaded" in capsys.readouterr().err

    def test_interrupt(self, monkeypatch, capsys):
        """Test Ctrl-C during a run exits 130."""
        interrupted = ScriptedModel(KeyboardInterrupt())
        monkeypatch.setattr(cli, "create_model", lambda settings: interrupted)

        assert run("Task") == cli.EXIT_INTERRUPTED
        assert "Interrupted." in capsys.readouterr().err

    def test_interrupt_aborts_agent(self, monkeypatch, capsys):
        """Test the interrupted agent ends in the aborted state."""
        agents = []

        class RecordingAgent(cli.ShellAgent):
            def __init__(self, *args, **kwargs):
                super().__init__(*args, **kwargs)
                agents.append(self)

        monkeypatch.setattr(cli, "ShellAgent", RecordingAgent)
        monkeypatch.setattr(cli, "create_model", lambda settings: ScriptedModel(KeyboardInterrupt()))

        assert run("Task") == cli.EXIT_INTERRUPTED
        assert agents[0].state is AgentState.ABORTED

    def test_query_failure_is_general_error(self, monkeypatch, capsys):
        """Test any failed query is reported as a model error."""
        denied = ScriptedModel(PermissionError("no access"))
        monkeypatch.setattr(cli, "create_model", lambda settings: denied)

        assert run("Task") == cli.EXIT_ERROR


class TestHelpers:
    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            cli.main(["--version"])

        assert exc.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_get_task_prefers_argument(self):
        assert cli.get_task("  do it ", io.StringIO("ignored")) == "do it"

    def test_get_task_ignores_tty(self):
        assert cli.get_task(None, TTY("typed")) == ""

    def test_handle_error_codes(self, capsys):
        assert cli._handle_error(PermissionError("x"), "running agent", False, "t") == cli.EXIT_PERMISSION_DENIED
        assert cli._handle_error(FileNotFoundError("x"), "running agent", False, "t") == cli.EXIT_NOT_FOUND
        assert cli._handle_error(RuntimeError("x"), "running agent", False, "t") == cli.EXIT_ERROR
