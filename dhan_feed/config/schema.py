"""
Configuration schema for dhan-feed.

Supports:
- YAML file loading
- Environment variable substitution (${VAR_NAME})
- Validation with error messages
- Secret redaction for safe logging

Example config (dhanfeed.yml):
    version: 1

    credentials:
      client_id: ${DHAN_CLIENT_ID}
      access_token: ${DHAN_ACCESS_TOKEN}

    connection:
      url: wss://api-feed.dhan.co

    session:
      authorization_timeout: 30
"""

import copy
import os
import re
from pathlib import Path
from dataclasses import dataclass, field, asdict
from typing import Optional, List, Any

import yaml

from ..core.errors import ConfigError, ErrorCode
from ..formats.layout import ACCESS_TOKEN_SIZE, CLIENT_ID_SIZE
from ..transport.websocket import DEFAULT_URL


def _substitute_env_vars(value: Any) -> Any:
    """
    Substitute ${VAR_NAME} with environment variable values.

    Example:
        ${DHAN_ACCESS_TOKEN} → os.environ.get('DHAN_ACCESS_TOKEN')
    """
    if isinstance(value, str):
        pattern = r'\$\{([^}]+)\}'

        def replace(match):
            env_value = os.environ.get(match.group(1))
            if env_value is None:
                return match.group(0)  # Keep original if not found
            return env_value

        return re.sub(pattern, replace, value)

    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [_substitute_env_vars(v) for v in value]

    return value


def _unresolved(value: str) -> bool:
    return '${' in value


@dataclass
class CredentialsConfig:
    """Feed credentials."""
    client_id: str = '${DHAN_CLIENT_ID}'
    access_token: str = '${DHAN_ACCESS_TOKEN}'


@dataclass
class ConnectionConfig:
    """Transport settings."""
    url: str = DEFAULT_URL
    ping_interval: Optional[float] = 20.0
    ping_timeout: Optional[float] = 10.0
    max_size: int = 2**20


@dataclass
class SessionConfig:
    """Session settings."""
    authorization_timeout: Optional[float] = 30.0


@dataclass
class LoggingConfig:
    """Logging settings."""
    level: str = 'INFO'


@dataclass
class FeedConfig:
    """Root configuration."""

    version: int = 1
    credentials: CredentialsConfig = field(default_factory=CredentialsConfig)
    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, path: Path) -> 'FeedConfig':
        """Load from YAML file with env var substitution."""
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Config not found: {path}")

        with open(path) as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {path}: {e}",
                                  code=ErrorCode.E3001_INVALID_CONFIG) from e

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> 'FeedConfig':
        """Create from dictionary, substituting ${VAR} references."""
        data = _substitute_env_vars(data)
        try:
            return cls(
                version=data.get('version', 1),
                credentials=CredentialsConfig(**data.get('credentials', {})),
                connection=ConnectionConfig(**data.get('connection', {})),
                session=SessionConfig(**data.get('session', {})),
                logging=LoggingConfig(**data.get('logging', {})),
            )
        except TypeError as e:
            raise ConfigError(f"Unknown config key: {e}",
                              code=ErrorCode.E3001_INVALID_CONFIG) from e

    def resolved(self) -> 'FeedConfig':
        """Copy with ${VAR} references substituted from the environment."""
        return FeedConfig.from_dict(self.to_dict())

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)

    def to_yaml(self) -> str:
        """Convert to YAML string."""
        return yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)

    def validate(self) -> List[str]:
        """Validate config. Returns list of errors (empty if valid)."""
        errors = []
        creds = self.credentials

        if not creds.client_id or _unresolved(creds.client_id):
            errors.append("client_id not configured")
        elif len(creds.client_id.encode('utf-8')) > CLIENT_ID_SIZE:
            errors.append(f"client_id longer than {CLIENT_ID_SIZE} bytes")

        if not creds.access_token or _unresolved(creds.access_token):
            errors.append("access_token not configured")
        elif len(creds.access_token.encode('utf-8')) > ACCESS_TOKEN_SIZE:
            errors.append(f"access_token longer than {ACCESS_TOKEN_SIZE} bytes")

        if not self.connection.url.startswith(('ws://', 'wss://')):
            errors.append(f"Invalid websocket url: {self.connection.url}")

        if self.connection.max_size <= 0:
            errors.append(f"Invalid max_size: {self.connection.max_size}")

        timeout = self.session.authorization_timeout
        if timeout is not None and timeout <= 0:
            errors.append(f"Invalid authorization_timeout: {timeout}")

        if self.logging.level.upper() not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            errors.append(f"Invalid logging level: {self.logging.level}")

        return errors

    def redacted(self) -> 'FeedConfig':
        """Return copy with secrets redacted."""
        redacted = copy.deepcopy(self)
        if redacted.credentials.access_token:
            redacted.credentials.access_token = '***REDACTED***'
        return redacted


def load_config(path: Optional[Path] = None) -> FeedConfig:
    """Load config from file or return defaults."""
    if path and Path(path).exists():
        return FeedConfig.load(path)

    search_paths = [
        Path('./dhanfeed.yml'),
        Path('./dhanfeed.yaml'),
        Path.home() / '.dhanfeed' / 'config.yml',
    ]

    for p in search_paths:
        if p.exists():
            return FeedConfig.load(p)

    return FeedConfig().resolved()


def generate_default_config() -> str:
    """Generate default config as YAML."""
    return f"""# dhan-feed configuration
version: 1

credentials:
  client_id: ${{DHAN_CLIENT_ID}}
  access_token: ${{DHAN_ACCESS_TOKEN}}

connection:
  url: {DEFAULT_URL}
  ping_interval: 20
  ping_timeout: 10

session:
  authorization_timeout: 30

logging:
  level: INFO
"""
