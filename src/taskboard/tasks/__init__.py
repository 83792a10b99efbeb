"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskStatus) and field validation
- task_store.py: SQLite-backed storage for the local backend
- task_service.py: async task store over TaskStore that broadcasts every mutation
- task_api.py: async HTTP client for the task REST API
"""
