"""Configuration management for dhan-feed."""

from .schema import (
    FeedConfig,
    CredentialsConfig,
    ConnectionConfig,
    SessionConfig,
    LoggingConfig,
    load_config,
    generate_default_config,
)

__all__ = [
    'FeedConfig',
    'CredentialsConfig',
    'ConnectionConfig',
    'SessionConfig',
    'LoggingConfig',
    'load_config',
    'generate_default_config',
]
