"""
Planning subsystem.

Components:
- task_models.py: data structures (Task, TaskNode, ImportanceLevel)
- task_repo.py: in-memory task repository with hierarchy and link relations
- realism.py: Realism Point computation, display ordering and wipe-out
"""
