"""
Core business logic for media uploads.

This module is framework-agnostic - it doesn't import FastAPI, boto3,
Snowflake or any infrastructure concerns. This separation means we can
test the upload pipeline in isolation and swap frameworks if needed.
"""
