"""
Client-side view state: task synchronization (task_sync.py) and board reconciliation (board.py).
"""
