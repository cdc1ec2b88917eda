"""Environment-driven settings.

Credentials are read here only by the boundary layers (CLI and server)
and then passed into the analysis code as plain values.
"""

import logging
import math
import os

logger = logging.getLogger(__name__)

DEFAULT_BACKEND = "claude"
DEFAULT_TIMEOUT = 60.0
DEFAULT_LOG_LEVEL = "WARNING"

_API_KEY_VARS = {
    "claude": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
}

_MODEL_VARS = {
    "claude": "CHATLENS_CLAUDE_MODEL",
    "openai": "CHATLENS_OPENAI_MODEL",
}


def get_api_key(backend: str) -> str | None:
    """Return the API key for a backend from its provider's usual env var."""
    var = _API_KEY_VARS.get(backend)
    if not var:
        return None
    return os.environ.get(var) or None


def api_key_env_var(backend: str) -> str | None:
    return _API_KEY_VARS.get(backend)


def get_default_backend() -> str:
    return os.environ.get("CHATLENS_BACKEND", DEFAULT_BACKEND)


def get_model(backend: str) -> str | None:
    """Return a model override for a backend, or None for the backend default."""
    var = _MODEL_VARS.get(backend)
    if not var:
        return None
    return os.environ.get(var) or None


def get_timeout() -> float:
    """Seconds to wait for a backend reply before giving up.

    An unusable CHATLENS_TIMEOUT is logged and the default is used instead.
    """
    env = os.environ.get("CHATLENS_TIMEOUT")
    if not env:
        return DEFAULT_TIMEOUT
    try:
        timeout = float(env)
    except ValueError:
        timeout = None
    if timeout is None or not math.isfinite(timeout) or timeout <= 0:
        logger.warning(
            "Ignoring CHATLENS_TIMEOUT=%r; expected a positive number of seconds. Using %gs",
            env, DEFAULT_TIMEOUT,
        )
        return DEFAULT_TIMEOUT
    return timeout


def get_log_level() -> str:
    return os.environ.get("CHATLENS_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()
