"""State/store layer.

This package is the single source of truth for the reported location: the
override state machine, the history log and favorites, and the hub that
tells the host about changes.
"""
