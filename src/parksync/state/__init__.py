"""State/store layer.

This package is the single source of truth for how the snapshot and the
change feed are merged into one canonical parking-space collection.
"""
