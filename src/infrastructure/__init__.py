"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- snowflake: Video record persistence
- storage: Object storage (S3)
- video: FFmpeg/FFprobe media tools

These wrappers translate between external formats and our domain models.
"""
