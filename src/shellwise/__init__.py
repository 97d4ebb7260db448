"""shellwise: an LLM agent that completes tasks one shell command at a time.

This package provides:
- A step loop that queries a model, parses one command, runs it, and
  feeds the observation back
- A parser that extracts exactly one ```bash``` block from a reply
- A shell executor with a safety blocklist and per-command timeouts
- Cooperative cancellation threaded through the model query and the
  child process

Key Components:
- ShellAgent: The loop controller
- BashParser: Command extraction
- ShellExecutor / BlocklistValidator: Command execution and safety checks
- AnthropicModel: Model collaborator backed by the Anthropic API
- Context: Cancellation signal with optional deadline

Example:
    from shellwise import AnthropicModel, ShellAgent

    agent = ShellAgent(AnthropicModel())
    result = agent.run("Create a file called hello.txt containing 'hi'")
    print(result.reason, result.output)
"""

__version__ = "0.1.0"

from shellwise.agent import (
    COMPLETION_MARKER,
    DEFAULT_SYSTEM_PROMPT,
    AgentConfig,
    AgentState,
    ShellAgent,
    format_observation,
)
from shellwise.context import Context, run_in_context
from shellwise.core import (
    Action,
    ActionKind,
    Fatal,
    HandlerResult,
    Message,
    Ok,
    Output,
    Recoverable,
    RecoverableKind,
    Role,
    StepOutcome,
    Terminal,
    TerminationReason,
)
from shellwise.errors import (
    Cancelled,
    ConfigError,
    DeadlineExceeded,
    ModelError,
    ShellwiseError,
    UnsupportedActionError,
)
from shellwise.execution import (
    DEFAULT_BLOCKED_PATTERNS,
    ActionHandler,
    BlocklistValidator,
    Executor,
    ShellExecutor,
    default_validator,
)
from shellwise.models import AnthropicModel, Model
from shellwise.parser import BashParser, Parser

__all__ = [
    # Agent
    "ShellAgent",
    "AgentConfig",
    "AgentState",
    "COMPLETION_MARKER",
    "DEFAULT_SYSTEM_PROMPT",
    "format_observation",
    # Core types
    "Action",
    "ActionKind",
    "Message",
    "Output",
    "Role",
    "TerminationReason",
    "RecoverableKind",
    "Ok",
    "Recoverable",
    "Terminal",
    "Fatal",
    "StepOutcome",
    "HandlerResult",
    # Cancellation
    "Context",
    "run_in_context",
    # Parsing
    "Parser",
    "BashParser",
    # Execution
    "Executor",
    "ShellExecutor",
    "ActionHandler",
    "BlocklistValidator",
    "DEFAULT_BLOCKED_PATTERNS",
    "default_validator",
    # Models
    "Model",
    "AnthropicModel",
    # Errors
    "ShellwiseError",
    "ConfigError",
    "ModelError",
    "Cancelled",
    "DeadlineExceeded",
    "UnsupportedActionError",
]
