"""Entry point for running ox_quiz_engine as a module.

Usage:
    python -m ox_quiz_engine <command> [options]
"""
from .cli import main

if __name__ == "__main__":
    raise SystemExit(main())
