"""
Configuration Module

Provides centralized configuration management for the application.
Supports YAML config files with environment variable overrides.
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, List
from functools import lru_cache
from pydantic_settings import BaseSettings


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge two dictionaries. Override values take precedence.

    Args:
        base: Base configuration dictionary
        override: Override configuration dictionary

    Returns:
        Merged configuration dictionary
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_yaml_config() -> Dict[str, Any]:
    """
    Load configuration from YAML files with local override support.

    Loading order:
    1. Load config.yaml (or config.example.yaml as fallback) as base configuration
    2. If config.local.yaml exists, merge it with base (local values override base)
    3. Return merged configuration

    Returns:
        Dictionary containing all configuration values
    """
    config_dir = Path(__file__).parent
    config_path = config_dir / "config.yaml"

    if not config_path.exists():
        config_path = config_dir / "config.example.yaml"
        if not config_path.exists():
            raise FileNotFoundError(
                f"Configuration file not found. Please create {config_dir / 'config.yaml'} "
                f"based on {config_dir / 'config.example.yaml'}"
            )

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            base_config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML configuration: {e}")

    local_config_path = config_dir / "config.local.yaml"
    if local_config_path.exists():
        try:
            with open(local_config_path, 'r', encoding='utf-8') as f:
                local_config = yaml.safe_load(f) or {}
            return deep_merge(base_config, local_config)
        except yaml.YAMLError as e:
            raise ValueError(f"Error parsing local YAML configuration: {e}")

    return base_config


# Load configuration
_config = load_yaml_config()


# ============================================================================
# Database Configuration
# ============================================================================

class DatabaseConfig:
    """Database configuration management"""

    _db_config = _config.get("database", {})

    URL = os.environ.get("DATABASE_URL") or _db_config.get("url", "")

    HOST = _db_config.get("host", "localhost")
    PORT = _db_config.get("port", 3306)
    USER = _db_config.get("user", "root")
    PASSWORD = _db_config.get("password", "")
    NAME = _db_config.get("name", "pushdeploy")

    POOL_SIZE = _db_config.get("pool_size", 5)
    MAX_OVERFLOW = _db_config.get("max_overflow", 10)
    POOL_RECYCLE = _db_config.get("pool_recycle", 3600)
    ECHO = _db_config.get("echo", False)

    @classmethod
    def get_async_database_url(cls) -> str:
        if cls.URL:
            return cls.URL
        return f"mysql+aiomysql://{cls.USER}:{cls.PASSWORD}@{cls.HOST}:{cls.PORT}/{cls.NAME}"

    @classmethod
    def is_sqlite(cls) -> bool:
        return cls.get_async_database_url().startswith("sqlite")

    @classmethod
    def ensure_exists(cls):
        """Ensure the directory of a file-based SQLite database exists"""
        url = cls.get_async_database_url()
        if cls.is_sqlite() and ":///" in url:
            path = url.split(":///", 1)[1]
            if path and path != ":memory:":
                Path(path).parent.mkdir(parents=True, exist_ok=True)


# ============================================================================
# Server Configuration
# ============================================================================

class ServerConfig:
    """Server configuration management"""

    _server_config = _config.get("server", {})

    HOST = _server_config.get("host", "0.0.0.0")
    PORT = _server_config.get("port", 8000)
    RELOAD = _server_config.get("reload", False)
    DEBUG = _server_config.get("debug", False)
    CORS_ORIGINS = _server_config.get("cors_origins", ["http://localhost:5173", "http://localhost:3000"])


# ============================================================================
# JWT Configuration
# ============================================================================

class JWTConfig:
    """JWT configuration for API sessions"""

    _jwt_config = _config.get("jwt", {})

    SECRET_KEY = os.environ.get("JWT_SECRET_KEY") or _jwt_config.get("secret_key", "")
    ALGORITHM = _jwt_config.get("algorithm", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES = _jwt_config.get("access_token_expire_minutes", 60 * 24)
    COOKIE_NAME = _jwt_config.get("cookie_name", "token")


# ============================================================================
# Git Configuration
# ============================================================================

class GitConfig:
    """Bare repository storage and git transport configuration"""

    _git_config = _config.get("git", {})

    BASE_PATH = Path(os.environ.get("REPOSITORY_BASE_PATH") or _git_config.get("base_path", "./repositories"))
    PUBLIC_URL = os.environ.get("GIT_PUBLIC_URL") or _git_config.get("public_url", "http://localhost:8000")
    DEFAULT_BRANCH = _git_config.get("default_branch", "master")
    BODY_LIMIT = _git_config.get("body_limit", 512 * 1024 * 1024)
    AUTH_ENABLED = _git_config.get("auth_enabled", True)
    PASSWORD_LENGTH = _git_config.get("password_length", 24)
    BCRYPT_ROUNDS = _git_config.get("bcrypt_rounds", 12)

    @classmethod
    def ensure_exists(cls):
        """Ensure repository root exists"""
        cls.BASE_PATH.mkdir(parents=True, exist_ok=True)


# ============================================================================
# Build Configuration
# ============================================================================

class BuildConfig:
    """Build orchestrator configuration"""

    _build_config = _config.get("build", {})

    WORKSPACE_PATH = Path(os.environ.get("BUILD_WORKSPACE_PATH") or _build_config.get("workspace_path", "./builds"))
    MAX_CONCURRENT = _build_config.get("max_concurrent", 2)
    MAX_QUEUED = _build_config.get("max_queued", 10)
    # Timeouts in seconds
    TIMEOUT = _build_config.get("timeout", 900)
    LOG_FLUSH_INTERVAL = _build_config.get("log_flush_interval", 2.0)
    IMAGE_PREFIX = _build_config.get("image_prefix", "pushdeploy")

    @classmethod
    def ensure_exists(cls):
        """Ensure build workspace exists"""
        cls.WORKSPACE_PATH.mkdir(parents=True, exist_ok=True)


# ============================================================================
# Deployment Configuration
# ============================================================================

class DeployConfig:
    """Runtime container and readiness probe configuration"""

    _deploy_config = _config.get("deploy", {})

    NETWORK = _deploy_config.get("network", "")
    CONTAINER_PORT = _deploy_config.get("container_port", 80)
    MEMORY_LIMIT = _deploy_config.get("memory_limit", "512m")
    CPU_COUNT = _deploy_config.get("cpu_count", 1)
    HEALTH_PATH = _deploy_config.get("health_path", "/")

    # Readiness probe
    PROBE_TIMEOUT = _deploy_config.get("probe_timeout", 60)
    PROBE_MAX_ATTEMPTS = _deploy_config.get("probe_max_attempts", 20)
    PROBE_INITIAL_DELAY = _deploy_config.get("probe_initial_delay", 0.5)
    PROBE_MAX_DELAY = _deploy_config.get("probe_max_delay", 8.0)
    PROBE_REQUEST_TIMEOUT = _deploy_config.get("probe_request_timeout", 2.0)


# ============================================================================
# Routing Configuration
# ============================================================================

class RoutingConfig:
    """External hostname routing configuration"""

    _routing_config = _config.get("routing", {})

    DOMAIN = os.environ.get("ROUTING_DOMAIN") or _routing_config.get("domain", "localhost")
    PROXY_ENABLED = _routing_config.get("proxy_enabled", True)
    PROXY_TIMEOUT = _routing_config.get("proxy_timeout", 30)


# ============================================================================
# Terminal Configuration
# ============================================================================

class TerminalConfig:
    """Web terminal configuration"""

    _terminal_config = _config.get("terminal", {})

    SHELL = _terminal_config.get("shell", "/bin/sh")
    READ_CHUNK_SIZE = _terminal_config.get("read_chunk_size", 4096)


# ============================================================================
# Pydantic Settings
# ============================================================================

class Settings(BaseSettings):
    """Application settings with validation"""

    app_name: str = "PushDeploy"
    debug: bool = ServerConfig.DEBUG

    database_url: str = DatabaseConfig.get_async_database_url()

    repository_base_path: Path = GitConfig.BASE_PATH
    build_workspace_path: Path = BuildConfig.WORKSPACE_PATH

    routing_domain: str = RoutingConfig.DOMAIN

    host: str = ServerConfig.HOST
    port: int = ServerConfig.PORT
    cors_origins: List[str] = ServerConfig.CORS_ORIGINS

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    DatabaseConfig.ensure_exists()
    GitConfig.ensure_exists()
    BuildConfig.ensure_exists()
    return Settings()


__all__ = [
    "load_yaml_config",
    "DatabaseConfig",
    "ServerConfig",
    "JWTConfig",
    "GitConfig",
    "BuildConfig",
    "DeployConfig",
    "RoutingConfig",
    "TerminalConfig",
    "Settings",
    "get_settings",
]
