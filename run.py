#!/usr/bin/env python3
"""
SkylarFocus Runner Script

Entry point for the focus timer.

Usage:
    python run.py --add-task "Write report" --quota 2 --unit pomodoros
    python run.py --start task-1
    python run.py --watch 1500
    python run.py --status
    python run.py --stats
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from skylarfocus.cli import main


if __name__ == "__main__":
    sys.exit(main())
