"""
Configuration loading and validation.

Provides frozen settings objects for the paper broker and logging, loaded from
environment variables or a `.env` file with upfront validation.
"""
