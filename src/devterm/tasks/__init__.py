"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskPatch, Subtask, Comment, ActivityLogEntry)
- progress.py / change_tracker.py / time_tracking.py: pure derived-state helpers
- orchestrator.py: the single entry point for task mutations
- task_store.py: SQLite-backed storage
- timer_heartbeat.py: background fold-and-restart loop for running timers
- task_api.py: AI subtask breakdown
"""
