"""Command-line interface for shellwise.

Exit codes:
    0    Success (task complete or step limit reached)
    1    General error
    2    Command misuse (bad flags, no task, invalid configuration)
    126  Permission denied
    127  Not found
    130  Interrupted
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Sequence, TextIO

from shellwise import __version__
from shellwise.agent import ShellAgent
from shellwise.config import Settings, load_settings, parse_duration
from shellwise.context import Context
from shellwise.core import Terminal, TerminationReason
from shellwise.errors import ConfigError
from shellwise.logging_utils import configure_logging
from shellwise.models import AnthropicModel, Model

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_MISUSE = 2
EXIT_PERMISSION_DENIED = 126
EXIT_NOT_FOUND = 127
EXIT_INTERRUPTED = 130

RUN_EPILOG = """examples:
  shellwise run "Create a file called hello.txt"
  shellwise run "List files" -v
  echo "Create hello.txt" | shellwise run -
  shellwise run "List files" --json
  shellwise run "Build the project" -q
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shellwise",
        description="An LLM-powered agent that completes tasks by running shell commands.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command")

    run = subparsers.add_parser(
        "run",
        help="Run the agent with a task",
        epilog=RUN_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    run.add_argument("task", nargs="?", help="Task to complete, or - to read it from stdin")
    run.add_argument("-v", "--verbose", action="store_true", help="Verbose output (debug logs)")
    run.add_argument("-q", "--quiet", action="store_true", help="Quiet mode (errors only)")
    run.add_argument("--json", dest="json_output", action="store_true", help="Output as JSON")
    run.add_argument(
        "--config-dir",
        default=".",
        help="Directory containing config.toml (default: current directory)",
    )
    run.add_argument("--max-steps", type=int, default=None, help="Override max_steps")
    run.add_argument(
        "--timeout",
        default=None,
        help="Per-command timeout, e.g. 30, 30s, 2m (overrides command_timeout)",
    )
    run.add_argument("--cwd", dest="working_dir", default=None, help="Working directory for commands")
    run.add_argument("--log-file", default=None, help="Log file path (defaults to stderr)")
    run.set_defaults(handler=run_main)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the ``shellwise`` command."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help(sys.stderr)
        return EXIT_MISUSE
    return args.handler(args)


def run_main(args: argparse.Namespace) -> int:
    """Handle ``shellwise run``."""
    if args.verbose and args.quiet:
        return _user_error("--verbose and --quiet cannot be used together")

    task = get_task(args.task, sys.stdin)
    if not task:
        return _user_error('no task provided. Usage: shellwise run "your task"')

    try:
        settings = _load(args)
        configure_logging(_log_level(args, settings), args.log_file)
        settings.validate()
        output: TextIO | None = None if args.quiet or args.json_output else sys.stdout
        agent = ShellAgent(create_model(settings), config=settings.agent_config(), output=output)
    except ConfigError as exc:
        return _handle_error(exc, "loading config", args.json_output, task)
    except ValueError as exc:
        # Bad log level or blocklist pattern.
        return _handle_error(ConfigError(str(exc)), "loading config", args.json_output, task)

    ctx = Context.background()
    try:
        result = agent.run(settings.render_task(task), ctx)
    except KeyboardInterrupt:
        ctx.cancel()
        agent.abort()
        logger.warning("interrupted by user")
        result = Terminal(TerminationReason.USER_ABORT)
    except Exception as exc:
        logger.debug("run failed", exc_info=True)
        return _handle_error(exc, "running agent", args.json_output, task)

    if args.json_output:
        _print_json(task=task, result=result)
    elif not args.quiet:
        _print_result(result, settings)

    if result.reason is TerminationReason.USER_ABORT:
        return EXIT_INTERRUPTED
    return EXIT_SUCCESS


def create_model(settings: Settings) -> Model:
    """Build the model collaborator for these settings."""
    return AnthropicModel(
        model=settings.model,
        api_key=settings.api_key,
        base_url=settings.base_url,
    )


def get_task(arg: str | None, stdin: TextIO) -> str:
    """Return the task from the argument, or from piped stdin for ``-``/none."""
    if arg is not None and arg != "-":
        return arg.strip()
    if stdin is None or stdin.isatty():
        return ""
    return stdin.read().strip()


def _load(args: argparse.Namespace) -> Settings:
    settings = load_settings(args.config_dir)
    if args.max_steps is not None:
        settings.max_steps = args.max_steps
    if args.timeout is not None:
        settings.command_timeout = parse_duration(args.timeout, "--timeout")
    if args.working_dir is not None:
        settings.working_dir = args.working_dir
    return settings


def _log_level(args: argparse.Namespace, settings: Settings) -> str:
    if args.quiet:
        return "ERROR"
    if args.verbose:
        return "DEBUG"
    return settings.log_level or "WARNING"


def _print_result(result: Terminal, settings: Settings) -> None:
    if result.reason is TerminationReason.STEP_LIMIT:
        print(
            f"Step limit reached ({settings.max_steps} steps) before the task was completed.",
            file=sys.stderr,
        )
    elif result.reason is TerminationReason.USER_ABORT:
        print("Interrupted.", file=sys.stderr)
        return
    print(result.output or "Done.")


def _print_json(
    *,
    task: str,
    result: Terminal | None = None,
    error: BaseException | None = None,
) -> None:
    succeeded = result is not None and result.reason is not TerminationReason.USER_ABORT
    payload = {
        "success": error is None and succeeded,
        "task": task,
        "reason": result.reason.value if result else None,
        "response": result.output if result else "",
        "error": str(error) if error else None,
    }
    print(json.dumps(payload, indent=2))


def _user_error(message: str) -> int:
    print(f"Error: {message}", file=sys.stderr)
    return EXIT_MISUSE


def _handle_error(exc: BaseException, context: str, json_output: bool, task: str) -> int:
    """Report an error and pick the exit code."""
    if json_output:
        _print_json(task=task, error=exc)

    message = str(exc)
    if isinstance(exc, ConfigError) and "API_KEY" in message:
        if not json_output:
            print("Error: API key not configured.", file=sys.stderr)
            print("", file=sys.stderr)
            print("  export ANTHROPIC_API_KEY=your-api-key", file=sys.stderr)
        return EXIT_MISUSE
    if isinstance(exc, ConfigError):
        code = EXIT_MISUSE
    elif isinstance(exc, PermissionError) or "permission denied" in message.lower():
        code = EXIT_PERMISSION_DENIED
    elif isinstance(exc, FileNotFoundError):
        code = EXIT_NOT_FOUND
    else:
        code = EXIT_ERROR

    if not json_output:
        if code == EXIT_PERMISSION_DENIED:
            print(f"Error: Permission denied during {context}.", file=sys.stderr)
        else:
            print(f"Error: {message}", file=sys.stderr)
    return code


if __name__ == "__main__":
    raise SystemExit(main())
