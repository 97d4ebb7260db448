"""Entry point for running shellwise as a module.

Usage:
    python -m shellwise run "your task"
"""

from shellwise.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
