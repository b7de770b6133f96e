"""
SkylarFocus - Focus Session Engine
==================================

The timer engine behind the SkylarFocus planner: count-up and pomodoro
sessions that survive reloads, credit progress into the day's plan and the
originating task list, and drive the work/break cycle.

Modules:
- core: Configuration, logging, errors, clock source
- focus: Session state machine, duration math, snapshots, reconciler
- storage: Task collections and key-value snapshot stores
"""

__version__ = "1.0.0"
__author__ = "SkylarFocus Project"
