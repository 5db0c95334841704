import json
import os
from types import MappingProxyType
from typing import Mapping

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


DEFAULT_CONFIG_PATH = "/etc/write2x_config.json"
DEFAULT_SCOPES = "tweet.read tweet.write users.read offline.access"
REQUIRED_PROVIDER_KEYS = ("X_CLIENT_ID", "X_CLIENT_SECRET", "X_REDIRECT_URL")


class ConfigError(RuntimeError):
    """Raised when the provider configuration is missing or malformed."""


def load_provider_config(path: str) -> Mapping[str, str]:
    """Read the flat JSON provider config and return it read-only.

    The file must hold a single JSON object whose values are all strings
    and which defines every key in ``REQUIRED_PROVIDER_KEYS``.
    """

    try:
        with open(path, "r", encoding="utf-8") as config_file:
            data = json.load(config_file)
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Config file {path} is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object.")

    bad_values = [key for key, value in data.items() if not isinstance(value, str)]
    if bad_values:
        raise ConfigError(
            f"Config values must be strings; check: {', '.join(sorted(bad_values))}"
        )

    missing = [key for key in REQUIRED_PROVIDER_KEYS if not data.get(key)]
    if missing:
        raise ConfigError(
            f"Missing required configuration values: {', '.join(missing)}. "
            f"Check {path}."
        )

    return MappingProxyType(dict(data))


class BaseConfig:
    """Base configuration shared by all environments."""

    # --- Flask Configuration ---
    SECRET_KEY = os.environ.get("FLASK_SECRET_KEY")
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = os.environ.get("SESSION_COOKIE_SECURE", "false").lower() == "true"

    # --- X (Twitter) provider configuration ---
    # Client credentials live in a JSON file rather than the environment.
    CONFIG_PATH = os.environ.get("WRITE2X_CONFIG_PATH", DEFAULT_CONFIG_PATH)

    X_CLIENT_ID = None
    X_CLIENT_SECRET = None
    X_REDIRECT_URL = None
    X_SCOPES = DEFAULT_SCOPES

    X_AUTHORIZE_URL = "https://x.com/i/oauth2/authorize"
    X_TOKEN_URL = "https://api.twitter.com/2/oauth2/token"
    X_API_BASE_URL = "https://api.twitter.com/2"

    # Seconds to wait on any outbound call to X.
    HTTP_TIMEOUT = float(os.environ.get("HTTP_TIMEOUT", "10"))

    # Refresh the access token this many seconds before it expires.
    TOKEN_REFRESH_SKEW = int(os.environ.get("TOKEN_REFRESH_SKEW", "60"))

    # How long a started login may wait for its callback.
    PKCE_FLOW_TTL = int(os.environ.get("PKCE_FLOW_TTL", "600"))

    # Server-side sessions untouched this long are dropped (default 30 days).
    SESSION_IDLE_TTL = int(os.environ.get("SESSION_IDLE_TTL", str(30 * 24 * 3600)))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    @classmethod
    def load_provider_settings(cls) -> dict[str, str]:
        """Load the provider JSON file into a dict suitable for ``app.config``."""

        provider = load_provider_config(cls.CONFIG_PATH)
        settings = {key: value for key, value in provider.items() if key.startswith("X_")}
        settings.setdefault("X_SCOPES", DEFAULT_SCOPES)
        if not cls.SECRET_KEY and provider.get("FLASK_SECRET_KEY"):
            settings["SECRET_KEY"] = provider["FLASK_SECRET_KEY"]
        return settings

    @classmethod
    def validate(cls, config: Mapping[str, object] | None = None) -> None:
        """Validate that critical configuration values are present.

        Runs at startup so the process fails fast when the provider file
        or the Flask secret is missing.
        """

        def lookup(name: str) -> object:
            if config is not None:
                return config.get(name)
            return getattr(cls, name, None)

        required = ["SECRET_KEY", *REQUIRED_PROVIDER_KEYS, "X_SCOPES"]
        missing = [name for name in required if not lookup(name)]
        if missing:
            raise ConfigError(
                f"Missing required configuration values: {', '.join(missing)}. "
                "Check your environment variables, .env file or provider config file."
            )


class DevelopmentConfig(BaseConfig):
    """Configuration for local development."""

    DEBUG = True


class ProductionConfig(BaseConfig):
    """Configuration for production deployments."""

    DEBUG = False
    # Ensure cookies are secure and HTTP-only in production.
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"


class TestingConfig(BaseConfig):
    """Configuration used in unit tests.

    Provides dummy but syntactically valid values so tests do not
    require a config file, real secrets or network calls.
    """

    TESTING = True
    SECRET_KEY = "test-secret-key"
    X_CLIENT_ID = "a"
    X_CLIENT_SECRET = "b"
    X_REDIRECT_URL = "https://h/callback"
    # Disable CSRF in tests to simplify client interactions.
    WTF_CSRF_ENABLED = False

    @classmethod
    def load_provider_settings(cls) -> dict[str, str]:  # type: ignore[override]
        """Use the class attributes instead of reading a file."""
        return {}

    @classmethod
    def validate(cls, config: Mapping[str, object] | None = None) -> None:  # type: ignore[override]
        """Skip strict validation during tests."""
        return


def get_config_class() -> type[BaseConfig]:
    """Select the appropriate configuration class from APP_ENV.

    Defaults to ``DevelopmentConfig`` when ``APP_ENV`` is not set.
    """

    env = os.environ.get("APP_ENV", "development").lower()
    if env in {"prod", "production"}:
        return ProductionConfig
    if env in {"test", "testing"}:
        return TestingConfig
    return DevelopmentConfig
