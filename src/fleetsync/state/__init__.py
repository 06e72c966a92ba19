"""State layer.

This package owns the only state that outlives a cycle: the feed cursors
that tell the next fetch where to resume.
"""

from fleetsync.state.cursors import CursorStore

__all__ = ["CursorStore"]
