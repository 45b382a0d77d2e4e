"""Trac connection settings for the live sync service.

Each field is resolved independently, highest precedence first:
    CLI args > Environment variables (.env loaded into them) > YAML ``trac``
    section > Built-in defaults

Environment variables:
    TRAC_URL: Trac instance URL (required)
    TRAC_USERNAME: Trac username (required)
    TRAC_PASSWORD: Trac password (required)
    TRAC_INSECURE: Skip SSL verification (optional, default: false)
    TRAC_DEBUG: Enable debug logging (optional, default: false)
    TRAC_MAX_PARALLEL_REQUESTS: Max parallel XML-RPC requests (optional, default: 5)
"""

import logging
import os
from dataclasses import dataclass
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

MAX_PARALLEL_RANGE = range(1, 101)
_TRUTHY = frozenset({"true", "1", "yes", "on"})


@dataclass
class Config:
    trac_url: str
    username: str
    password: str
    insecure: bool = False
    debug: bool = False
    max_parallel_requests: int = 5


def validate_config(config: Config) -> None:
    """Check *config* in place, normalising the URL.

    Raises:
        ValueError: If the URL is not http(s) with a hostname, or a
            credential is blank.
    """
    url = config.trac_url.strip()
    if urlparse(url).scheme not in ("http", "https"):
        raise ValueError(
            f"Invalid Trac URL '{url}': must start with http:// or https://"
        )
    if not urlparse(url).hostname:
        raise ValueError(f"Invalid Trac URL '{url}': URL must include a hostname")
    config.trac_url = url.rstrip("/")

    for label, value in (
        ("username", config.username),
        ("password", config.password),
    ):
        if not value.strip():
            raise ValueError(
                f"Trac {label} cannot be empty. "
                f"Set TRAC_{label.upper()} environment variable."
            )

    if config.insecure:
        logger.warning(
            "SSL verification disabled for %s. Use only for development.",
            config.trac_url,
        )


def _required(cli_value: str | None, label: str, fallbacks: dict) -> str:
    env_key = f"TRAC_{label.upper()}"
    value = cli_value or os.getenv(env_key) or fallbacks.get(label)
    if not value:
        raise ValueError(
            f"Trac {label} not found. Set {env_key} environment variable, "
            f"pass --{label} CLI argument, or add '{label}' to config.yml."
        )
    return str(value).strip()


def _flag(cli_value: bool, label: str, fallbacks: dict) -> bool:
    """A CLI flag can only switch on; an env var set either way beats YAML."""
    if cli_value:
        return True
    raw = os.getenv(f"TRAC_{label.upper()}")
    if raw is not None:
        return raw.strip().lower() in _TRUTHY
    return bool(fallbacks.get(label, False))


def _max_parallel(fallbacks: dict) -> int:
    raw = os.getenv("TRAC_MAX_PARALLEL_REQUESTS")
    if raw is None:
        return int(fallbacks.get("max_parallel_requests", 5))
    try:
        value = int(raw)
    except ValueError:
        value = 0
    if value not in MAX_PARALLEL_RANGE:
        raise ValueError(
            f"Invalid TRAC_MAX_PARALLEL_REQUESTS '{raw}': "
            "must be a number between 1 and 100"
        )
    return value


def load_config(
    url: str | None = None,
    username: str | None = None,
    password: str | None = None,
    insecure: bool = False,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Resolve and validate the Trac connection settings.

    The caller is responsible for calling ``load_dotenv()`` first so that
    .env values are visible through ``os.getenv()``.

    Args:
        url, username, password: CLI overrides.
        insecure, debug: CLI flags.
        yaml_fallbacks: Values from the YAML ``trac`` section.

    Raises:
        ValueError: If a required value is missing from every source, or
            any value is invalid.
    """
    fallbacks = yaml_fallbacks or {}
    config = Config(
        trac_url=_required(url, "url", fallbacks),
        username=_required(username, "username", fallbacks),
        password=_required(password, "password", fallbacks),
        insecure=_flag(insecure, "insecure", fallbacks),
        debug=_flag(debug, "debug", fallbacks),
        max_parallel_requests=_max_parallel(fallbacks),
    )
    validate_config(config)
    return config
