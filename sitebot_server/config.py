"""Base configuration for SiteBot Server."""

from typing import Literal


class MissingCredentialError(RuntimeError):
    """Raised at startup when the configured backend needs an API key that is not set."""


class ServerConfig:
    """Base configuration class for SiteBot Server.

    Projects should subclass this and override as needed.
    """

    # Backend configuration
    BACKEND_TYPE: Literal["openai", "ollama"] = "openai"
    CHAT_MODEL: str = "gpt-4o-mini"
    EMBEDDING_MODEL: str = "text-embedding-3-small"

    # Backend endpoints
    OPENAI_ENDPOINT: str = "https://api.openai.com/v1"
    OPENAI_API_KEY: str = ""
    OLLAMA_ENDPOINT: str = "http://localhost:11434"

    # Server configuration
    DEFAULT_HOST: str = "127.0.0.1"  # Use 0.0.0.0 to listen on all interfaces
    DEFAULT_PORT: int = 3000
    DEFAULT_TEMPERATURE: float = 0.15
    SYSTEM_PROMPT_PATH: str = "system_prompt.md"

    # Name the assistant introduces itself with
    BOT_NAME: str = "SiteBot"

    # Debug settings
    DEBUG_LOG: bool = False
    DEBUG_LOG_FILE: str = "sitebot_debug.log"
    DEBUG_LOG_MAX_BYTES: int = 10 * 1024 * 1024  # 10MB default
    DEBUG_LOG_BACKUP_COUNT: int = 5

    # Backend timeout settings (in seconds)
    BACKEND_CONNECT_TIMEOUT: int = 10
    BACKEND_READ_TIMEOUT: int = 120

    # Health check settings
    HEALTH_CHECK_ON_STARTUP: bool = True
    HEALTH_CHECK_TIMEOUT: int = 5

    # Build the knowledge base when the server starts
    CRAWL_ON_STARTUP: bool = True

    def requires_api_key(self) -> bool:
        """Return True when the configured backend cannot be called without an API key."""
        return self.BACKEND_TYPE == "openai" and "api.openai.com" in self.OPENAI_ENDPOINT

    def has_api_key(self) -> bool:
        """Return True when an API key is set and is not a placeholder."""
        key = (self.OPENAI_API_KEY or "").strip()
        return bool(key) and not key.startswith("sk-your_")

    def validate(self):
        """Check startup requirements.

        Raises:
            MissingCredentialError: If the backend needs an API key and none is configured
        """
        if self.requires_api_key() and not self.has_api_key():
            raise MissingCredentialError(
                f"Missing OPENAI_API_KEY for backend '{self.BACKEND_TYPE}' at {self.OPENAI_ENDPOINT}"
            )

    @classmethod
    def from_env(cls, env_prefix: str = ""):
        """Create config from environment variables with optional prefix.

        Args:
            env_prefix: Prefix for environment variables (e.g., "SODERBOT_")

        Returns:
            ServerConfig instance populated from environment
        """
        from dotenv import load_dotenv

        load_dotenv()

        config = cls()
        get_env = env_getter(env_prefix)

        config.BACKEND_TYPE = get_env("BACKEND", cls.BACKEND_TYPE)
        config.CHAT_MODEL = get_env("CHAT_MODEL", cls.CHAT_MODEL)
        config.EMBEDDING_MODEL = get_env("EMBEDDING_MODEL", cls.EMBEDDING_MODEL)
        config.OPENAI_ENDPOINT = get_env("OPENAI_ENDPOINT", cls.OPENAI_ENDPOINT).rstrip("/")
        config.OPENAI_API_KEY = get_env("OPENAI_API_KEY", cls.OPENAI_API_KEY)
        config.OLLAMA_ENDPOINT = get_env("OLLAMA_ENDPOINT", cls.OLLAMA_ENDPOINT).rstrip("/")
        config.DEFAULT_HOST = get_env("HOST", cls.DEFAULT_HOST)
        config.DEFAULT_PORT = int(get_env("PORT", str(cls.DEFAULT_PORT)))
        config.DEFAULT_TEMPERATURE = float(get_env("TEMPERATURE", str(cls.DEFAULT_TEMPERATURE)))
        config.SYSTEM_PROMPT_PATH = get_env("SYSTEM_PROMPT_PATH", cls.SYSTEM_PROMPT_PATH)
        config.BOT_NAME = get_env("BOT_NAME", cls.BOT_NAME)
        config.DEBUG_LOG = get_env("DEBUG_LOG", "").lower() in ("true", "1", "yes")
        config.DEBUG_LOG_FILE = get_env("DEBUG_LOG_FILE", cls.DEBUG_LOG_FILE)
        config.DEBUG_LOG_MAX_BYTES = int(get_env("DEBUG_LOG_MAX_BYTES", str(cls.DEBUG_LOG_MAX_BYTES)))
        config.DEBUG_LOG_BACKUP_COUNT = int(get_env("DEBUG_LOG_BACKUP_COUNT", str(cls.DEBUG_LOG_BACKUP_COUNT)))
        config.BACKEND_CONNECT_TIMEOUT = int(get_env("BACKEND_CONNECT_TIMEOUT", str(cls.BACKEND_CONNECT_TIMEOUT)))
        config.BACKEND_READ_TIMEOUT = int(get_env("BACKEND_READ_TIMEOUT", str(cls.BACKEND_READ_TIMEOUT)))
        config.HEALTH_CHECK_ON_STARTUP = get_env("HEALTH_CHECK_ON_STARTUP", "").lower() not in ("false", "0", "no")
        config.HEALTH_CHECK_TIMEOUT = int(get_env("HEALTH_CHECK_TIMEOUT", str(cls.HEALTH_CHECK_TIMEOUT)))
        config.CRAWL_ON_STARTUP = get_env("CRAWL_ON_STARTUP", "").lower() not in ("false", "0", "no")

        return config


def env_getter(env_prefix: str = ""):
    """Return a lookup that tries ``{env_prefix}{name}`` first, then ``name``."""
    import os

    def get_env(name: str, default):
        prefixed = os.getenv(f"{env_prefix}{name}", None)
        if prefixed is not None:
            return prefixed
        return os.getenv(name, default)

    return get_env
