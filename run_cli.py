#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
locsync CLI Launcher
Runs the command line interface from a source checkout
"""

import sys
from pathlib import Path

# Ensure stdout uses UTF-8
if hasattr(sys.stdout, "reconfigure"):
    sys.stdout.reconfigure(encoding="utf-8", errors="replace")
if hasattr(sys.stderr, "reconfigure"):
    sys.stderr.reconfigure(encoding="utf-8", errors="replace")


def setup_environment() -> None:
    """Add the project root to the import path."""
    project_root = Path(__file__).parent
    if str(project_root) not in sys.path:
        sys.path.insert(0, str(project_root))


def main() -> int:
    setup_environment()

    try:
        from locsync.cli_main import main as cli_main
    except ImportError as e:
        print(f"Error: Could not import CLI module: {e}")
        print("Ensure you are running from the project root and all dependencies are installed.")
        return 1
    return cli_main()


if __name__ == "__main__":
    sys.exit(main())
