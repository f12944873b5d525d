"""Entry point for running structure_core as a module.

Usage:
    python -m structure_core <command> [options]
"""

from structure_core.cli import main

if __name__ == "__main__":
    main()
