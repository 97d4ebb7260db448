"""Shell agent with LLM integration.

The agent orchestrates:
1. Conversation with the LLM
2. Command extraction from LLM responses
3. Validated execution of one command per step
4. Error feedback so the model can correct itself
5. Termination on the completion marker or the step limit

Each step is one round trip: query the model, parse its reply, run the
command, and append what happened to the conversation. Failures the model
can fix are fed back as user messages; everything else ends the session.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from shellwise.context import Context
from shellwise.core import (
    Action,
    Fatal,
    Message,
    Ok,
    Output,
    Recoverable,
    Role,
    StepOutcome,
    Terminal,
    TerminationReason,
)
from shellwise.errors import Cancelled, ModelError
from shellwise.execution import (
    DEFAULT_TIMEOUT,
    ActionHandler,
    BlocklistValidator,
    Executor,
    ShellExecutor,
    default_validator,
)
from shellwise.logging_utils import abbreviate
from shellwise.models import Model
from shellwise.parser import BashParser, Parser

logger = logging.getLogger(__name__)

COMPLETION_MARKER = "TASK_COMPLETE"
NO_OUTPUT = "(no output)"
MAX_OBSERVATION_CHARS = 10000
TRUNCATION_NOTICE = "\n\n[... output truncated ...]\n\n"
DEFAULT_MAX_STEPS = 25


class OutputSink(Protocol):
    """Anything with a text ``write`` method."""

    def write(self, text: str) -> object:
        ...


class _NullSink:
    def write(self, text: str) -> int:
        return len(text)


class AgentState(str, Enum):
    """Lifecycle of a ShellAgent session."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETE = "complete"
    STEP_LIMIT_REACHED = "step_limit_reached"
    ABORTED = "aborted"
    FAILED = "failed"


@dataclass
class AgentConfig:
    """Configuration for the agent."""

    system_prompt: str = ""
    max_steps: int = DEFAULT_MAX_STEPS
    command_timeout: float = DEFAULT_TIMEOUT
    working_dir: str | None = None
    blocked_patterns: list[str] | None = None
    validate_commands: bool = True

    def __post_init__(self) -> None:
        if not self.system_prompt:
            self.system_prompt = DEFAULT_SYSTEM_PROMPT

    def build_executor(self) -> ShellExecutor:
        """Create the default executor for this configuration.

        Custom ``blocked_patterns`` replace the built-in blocklist.
        """
        if not self.validate_commands:
            validator = None
        elif self.blocked_patterns is not None:
            validator = BlocklistValidator(self.blocked_patterns)
        else:
            validator = default_validator()
        return ShellExecutor(
            timeout=self.command_timeout,
            working_dir=self.working_dir,
            validator=validator,
        )


class ShellAgent:
    """An agent that completes tasks by running one shell command per step.

    The agent:
    1. Seeds the conversation with the system prompt and the task
    2. Asks the model for the next command
    3. Extracts exactly one ```bash``` block from the reply
    4. Runs it through the executor (blocklist, timeout, fresh process)
    5. Feeds the observation back and repeats

    The agent is not safe for concurrent ``run`` calls on one instance.
    """

    def __init__(
        self,
        model: Model,
        executor: Executor | None = None,
        config: AgentConfig | None = None,
        parser: Parser | None = None,
        action_handler: ActionHandler | None = None,
        output: OutputSink | None = None,
    ):
        """Initialize the agent.

        Args:
            model: The LLM collaborator.
            executor: Runs commands. If None, builds a ShellExecutor from config.
            config: Agent configuration. If None, uses defaults.
            parser: Extracts commands from replies. If None, uses BashParser.
            action_handler: Optional hook tried before the executor.
            output: Sink for echoed commands and their stdout. If None,
                output is discarded.
        """
        self.config = config or AgentConfig()
        self.model = model
        self.executor = executor or self.config.build_executor()
        self.parser = parser or BashParser()
        self.action_handler = action_handler
        self.output = output or _NullSink()
        self.state = AgentState.IDLE

        self._messages: list[Message] = []
        self._step = 0

    # =========================================================================
    # Main loop
    # =========================================================================

    def run(self, task: str, ctx: Context | None = None) -> Terminal:
        """Run the loop until completion, the step limit, or a fatal error.

        Args:
            task: The task text, sent as the first user message.
            ctx: Cancellation context. If None, the run can't be cancelled.

        Returns:
            Terminal with reason ``complete`` and the final output, or reason
            ``step_limit`` and the last model response.

        Raises:
            Cancelled: If the context is cancelled.
            ModelError: If a model query fails.
            Exception: Any other unrecoverable error, unchanged.
        """
        ctx = ctx or Context.background()

        self._messages = []
        self._add_message(Role.SYSTEM, self.config.system_prompt)
        self._add_message(Role.USER, task)
        self.state = AgentState.RUNNING

        logger.info("agent loop starting max_steps=%s", self.config.max_steps)

        last_response = ""
        self._step = 0
        while self._step < self.config.max_steps:
            self._step += 1
            logger.info("step starting step=%s", self._step)

            outcome = self.step(ctx)

            if isinstance(outcome, Terminal):
                self.state = _state_for(outcome.reason)
                logger.info("agent terminated reason=%s", outcome.reason.value)
                return outcome

            if isinstance(outcome, Recoverable):
                logger.warning(
                    "process error, continuing type=%s message=%s",
                    outcome.kind.value,
                    abbreviate(outcome.feedback),
                )
                self._add_message(Role.USER, outcome.feedback)
                continue

            if isinstance(outcome, Fatal):
                self.state = (
                    AgentState.ABORTED if isinstance(outcome.error, Cancelled) else AgentState.FAILED
                )
                logger.error("unrecoverable error error=%s", outcome.error)
                raise outcome.error

            last_response = outcome.response

        self.state = AgentState.STEP_LIMIT_REACHED
        logger.warning("step limit reached max_steps=%s", self.config.max_steps)
        return Terminal(TerminationReason.STEP_LIMIT, last_response)

    def step(self, ctx: Context | None = None) -> StepOutcome:
        """Perform a single query, parse, execute, observe round trip."""
        ctx = ctx or Context.background()

        error = ctx.err()
        if error is not None:
            return Fatal(error)

        logger.debug("querying model")
        try:
            response = self.model.query(list(self._messages), ctx)
        except Cancelled as exc:
            return Fatal(exc)
        except Exception as exc:
            logger.error("query failed error=%s", exc)
            return Fatal(_as_model_error(exc))

        logger.debug("got response length=%s", len(response))

        parsed = self.parser.parse(response)
        if isinstance(parsed, Recoverable):
            logger.debug("failed to parse action feedback=%s", abbreviate(parsed.feedback))
            return parsed

        self._add_message(Role.ASSISTANT, response)
        self._emit(f"$ {parsed.command}\n")
        logger.info("executing command command=%s", abbreviate(parsed.command))

        try:
            result = self._dispatch(ctx, parsed)
        except Exception as exc:
            return Fatal(exc)

        if isinstance(result, Recoverable):
            logger.warning("command execution failed kind=%s", result.kind.value)
            return result

        return self._handle_output(response, result)

    def abort(self) -> None:
        """Mark the session aborted, e.g. after the caller was interrupted."""
        self.state = AgentState.ABORTED
        logger.warning("agent aborted step=%s", self._step)

    # =========================================================================
    # Introspection
    # =========================================================================

    @property
    def messages(self) -> list[Message]:
        """A copy of the conversation history."""
        return list(self._messages)

    @property
    def step_count(self) -> int:
        """Steps taken in the current (or last) run."""
        return self._step

    def describe(self) -> str:
        """Get a description of the agent's current state."""
        lines = [
            "ShellAgent",
            f"  Model: {self.model!r}",
            f"  Executor: {self.executor!r}",
            f"  State: {self.state.value}",
            f"  Steps: {self._step}/{self.config.max_steps}",
            f"  Messages: {len(self._messages)}",
        ]
        return "\n".join(lines)

    # =========================================================================
    # Internal methods
    # =========================================================================

    def _dispatch(self, ctx: Context, action: Action) -> Output | Recoverable:
        """Try the custom handler, then the executor."""
        if self.action_handler is not None:
            handled = self.action_handler(ctx, action)
            if handled is not None:
                logger.debug("action handled by custom handler")
                return handled
        return self.executor.execute(ctx, action)

    def _handle_output(self, response: str, output: Output) -> Terminal | Ok:
        complete = is_task_complete(output)
        if not complete and output.stdout.strip():
            self._emit(f"{output.stdout}\n")

        logger.debug(
            "command completed output_length=%s exit_code=%s",
            len(str(output)),
            output.exit_code,
        )

        if complete:
            logger.info("task complete signal in output")
            return Terminal(TerminationReason.COMPLETE, extract_final_output(output))

        self._add_message(Role.USER, format_observation(output))
        return Ok(response)

    def _add_message(self, role: Role, content: str) -> None:
        self._messages.append(Message(role=role, content=content))
        logger.debug("message added role=%s content_length=%s", role.value, len(content))

    def _emit(self, text: str) -> None:
        try:
            self.output.write(text)
        except (OSError, ValueError) as exc:
            logger.debug("output sink write failed error=%s", exc)


# =========================================================================
# Observation helpers
# =========================================================================


def is_task_complete(output: Output) -> bool:
    """True if the first line of stdout is the completion marker."""
    first_line = output.stdout.strip().split("\n", 1)[0]
    return first_line.strip() == COMPLETION_MARKER


def extract_final_output(output: Output) -> str:
    """Everything after the completion marker line, stripped."""
    parts = output.stdout.strip().split("\n", 1)
    if len(parts) > 1:
        return parts[1].strip()
    return ""


def truncate_output(text: str, limit: int = MAX_OBSERVATION_CHARS) -> str:
    """Keep the head and tail of long text around a truncation notice."""
    if len(text) <= limit:
        return text
    half = limit // 2
    return text[:half] + TRUNCATION_NOTICE + text[len(text) - half :]


def format_observation(output: Output) -> str:
    """Format command output as the next user message."""
    if not output.stdout.strip() and output.exit_code == 0:
        return NO_OUTPUT

    result = truncate_output(output.stdout)
    if output.exit_code != 0:
        result = f"[exit code: {output.exit_code}]\n{result}"
    return result


def _state_for(reason: TerminationReason) -> AgentState:
    if reason is TerminationReason.COMPLETE:
        return AgentState.COMPLETE
    if reason is TerminationReason.STEP_LIMIT:
        return AgentState.STEP_LIMIT_REACHED
    return AgentState.ABORTED


def _as_model_error(exc: Exception) -> ModelError:
    if isinstance(exc, ModelError):
        return exc
    error = ModelError(f"query failed: {exc}")
    error.__cause__ = exc
    return error


DEFAULT_SYSTEM_PROMPT = """You are an autonomous agent that executes bash commands to complete tasks.

RULES:
1. You can ONLY execute bash commands by wrapping them in a markdown code block with the 'bash' language tag
2. Execute ONE command at a time and wait for the output
3. Use the command output to inform your next action
4. When the task is complete, output "TASK_COMPLETE" followed by a summary on the next line

Example command format:
```bash
ls -la
```

Example completion:
```bash
echo "TASK_COMPLETE"
echo "Summary: Created hello.txt with the requested content"
```
"""
