"""Infrastructure layer for drive app.

This package contains integrations with external systems:
- Custom storage backend for the byte store (S3/MinIO)
- Metadata helpers (MIME type, storage keys, name validation)

Keep infrastructure concerns separate from business logic.
"""
