"""Business logic layer for drive app.

This package contains all business logic for the drive:
- Folder hierarchy and file placement (naming and parentage rules)
- Trash lifecycle with cascades over folder subtrees
- Storage quota accounting

All business logic should be implemented here, separate from
models (data layer) and infrastructure (external systems).
"""
