"""
Video upload service - ingest, fast-start remux and store user videos.

This package contains the complete application:
- core: Framework-agnostic upload pipeline and domain models
- infrastructure: External service integrations (S3, Snowflake, FFmpeg)
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
