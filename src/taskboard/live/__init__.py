"""
Live updates: event model, observer fan-out, ActionCable and in-process channels.
"""
