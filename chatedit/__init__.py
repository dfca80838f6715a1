"""ChatEdit - apply, review and undo model-proposed file changes."""

__version__ = "0.1.0"
