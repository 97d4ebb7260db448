"""Tests for command extraction."""

import pytest

from shellwise.core import Action, ActionKind, Recoverable, RecoverableKind
from shellwise.parser import BashParser


@pytest.fixture
def parser():
    return BashParser()


class TestBashParserSingleBlock:
    """Tests for replies with exactly one bash block."""

    def test_extracts_command(self, parser):
        """Test the command equals the trimmed fence contents."""
        text = "Let me look around.\n```bash\nls -la\n```\n"
        action = parser.parse(text)

        assert action == Action(kind=ActionKind.SHELL, command="ls -la")

    def test_strips_surrounding_whitespace(self, parser):
        """Test leading and trailing whitespace inside the fence is dropped."""
        action = parser.parse("```bash\n\n   echo hi   \n\n```")

        assert isinstance(action, Action)
        assert action.command == "echo hi"

    def test_keeps_multiline_command_verbatim(self, parser):
        """Test inner lines are kept as written."""
        text = '```bash\necho "TASK_COMPLETE"\necho "Summary: done"\n```'
        action = parser.parse(text)

        assert action.command == 'echo "TASK_COMPLETE"\necho "Summary: done"'

    def test_ignores_other_languages(self, parser):
        """Test python and untagged fences are not commands."""
        text = "```python\nprint(1)\n```\n```\nplain\n```\n```bash\npwd\n```"
        action = parser.parse(text)

        assert action.command == "pwd"


class TestBashParserFormatErrors:
    """Tests for replies the parser rejects."""

    def test_no_block(self, parser):
        """Test a reply without a bash block is a format error."""
        result = parser.parse("I think the task is done.")

        assert isinstance(result, Recoverable)
        assert result.kind is RecoverableKind.FORMAT
        assert "No bash command found" in result.feedback
        assert "TASK_COMPLETE" in result.feedback

    def test_multiple_blocks(self, parser):
        """Test more than one block reports the count."""
        text = "```bash\nls\n```\nthen\n```bash\npwd\n```\n```bash\nwhoami\n```"
        result = parser.parse(text)

        assert isinstance(result, Recoverable)
        assert result.kind is RecoverableKind.FORMAT
        assert "Found 3 commands" in result.feedback
        assert "single command" in result.feedback

    def test_empty_block(self, parser):
        """Test a block with only whitespace is a format error."""
        result = parser.parse("```bash\n   \n```")

        assert isinstance(result, Recoverable)
        assert result.kind is RecoverableKind.FORMAT
        assert "Empty command" in result.feedback

    def test_unclosed_block(self, parser):
        """Test an unterminated fence is not a command."""
        result = parser.parse("```bash\nls -la\n")

        assert isinstance(result, Recoverable)
        assert result.kind is RecoverableKind.FORMAT

    def test_parse_is_pure(self, parser):
        """Test parsing the same text twice gives equal results."""
        text = "```bash\nls\n```\n```bash\nls\n```"

        assert parser.parse(text) == parser.parse(text)
