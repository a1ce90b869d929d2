"""
Core business logic for video uploads.

This module is framework-agnostic - it doesn't import FastAPI, boto3,
Snowflake or ffmpeg wrappers. Those live in `infrastructure` and are
handed to the pipeline through protocols.
"""
