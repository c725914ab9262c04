"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- auth: JWT bearer tokens (python-jose)
- media: ffprobe/ffmpeg subprocesses
- snowflake: Database persistence
- storage: Object storage (S3) and local thumbnail assets

These wrappers translate between external formats and our domain models.
"""
