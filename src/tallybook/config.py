"""Runtime settings read from the environment."""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_MODEL = "gpt-3.5-turbo"
DEFAULT_CLASSIFIER_TIMEOUT = 10.0


@dataclass(frozen=True)
class Settings:
    """Settings shared by the CLI and the services it builds."""

    db_path: Optional[str] = None
    user_email: Optional[str] = None
    log_level: str = "WARNING"
    openai_api_key: Optional[str] = None
    openai_model: str = DEFAULT_MODEL
    classifier_timeout: float = DEFAULT_CLASSIFIER_TIMEOUT

    @property
    def use_ai(self) -> bool:
        """Whether the external classifier is configured."""
        return bool(self.openai_api_key)


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build settings from environment variables.

    Args:
        environ: Mapping to read from, os.environ when None

    Returns:
        Settings

    Raises:
        ValueError: If TALLYBOOK_CLASSIFIER_TIMEOUT is not a positive number
    """
    env = os.environ if environ is None else environ

    timeout_value = env.get("TALLYBOOK_CLASSIFIER_TIMEOUT")
    timeout = DEFAULT_CLASSIFIER_TIMEOUT
    if timeout_value:
        try:
            timeout = float(timeout_value)
        except ValueError as e:
            raise ValueError(f"Invalid TALLYBOOK_CLASSIFIER_TIMEOUT: {timeout_value!r}") from e
        if timeout <= 0:
            raise ValueError("TALLYBOOK_CLASSIFIER_TIMEOUT must be positive")

    return Settings(
        db_path=env.get("TALLYBOOK_DB_PATH") or None,
        user_email=env.get("TALLYBOOK_USER") or None,
        log_level=(env.get("TALLYBOOK_LOG_LEVEL") or "WARNING").upper(),
        openai_api_key=env.get("OPENAI_API_KEY") or None,
        openai_model=env.get("OPENAI_MODEL") or DEFAULT_MODEL,
        classifier_timeout=timeout,
    )
