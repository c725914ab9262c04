"""
Tubely - a media upload backend for video and thumbnail files.

This package contains the complete application:
- core: Framework-agnostic upload pipeline and domain models
- infrastructure: External service integrations (S3, Snowflake, FFmpeg, JWT)
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
