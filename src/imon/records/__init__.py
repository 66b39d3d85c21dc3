"""
Record subsystem.

Components:
- models.py: data structures (Task, TaskState, UserRecord, SudoUserRecord, OperatingInfo)
- keys.py: storage key derivation and parsing
- clock.py: task lifecycle transitions and duration accounting
- history.py: open-session tail replacement for task_history
"""
