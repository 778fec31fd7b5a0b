"""Infrastructure layer for library app.

This package contains integrations with external systems:
- Object storage gateway (S3/MinIO/R2) with presigned URLs
- Name sanitization and validation rules

Keep infrastructure concerns separate from business logic.
"""
