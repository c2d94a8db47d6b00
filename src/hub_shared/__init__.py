"""Spoke Registration Hub shared package.

This package contains components shared by the hub controllers:
- models: Pydantic domain models
- redis_client: Redis client wrapper for audit events
- config: Configuration management
- observability: Structured logging
"""

__version__ = "0.1.0"
