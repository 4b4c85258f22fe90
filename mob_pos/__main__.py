"""
Main entry point for running mob_pos as a module.

Usage:
    python -m mob_pos [command] [options]

This is equivalent to running:
    python -m mob_pos.cli [command] [options]
"""
import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
