"""
Task board client: synchronized task collection, live updates and a drag-and-drop board engine.
"""

__version__ = "0.1.0"
