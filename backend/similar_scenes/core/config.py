from pathlib import Path
from pydantic import BaseModel
from dotenv import load_dotenv
import logging
import os
from similar_scenes import __version__

_log = logging.getLogger(__name__)


def load_config_env() -> Path | None:
    """Load ``config.env`` into the environment, keeping variables already set.

    SIMILAR_SCENES_CONFIG_FILE names the file; otherwise ``config.env`` in the
    working directory is used. Returns the file that was loaded, if any.
    """
    override = os.getenv('SIMILAR_SCENES_CONFIG_FILE')
    path = Path(override) if override else Path.cwd() / 'config.env'
    if not path.is_file():
        return None
    try:
        load_dotenv(path)
    except OSError as exc:
        _log.warning("could not read %s: %s", path, exc)
        return None
    return path


load_config_env()

"""Connection configuration.

Env vars:
  STASH_URL                 - base URL of the Stash instance
  STASH_API_KEY             - API key sent as the ``ApiKey`` header
  SIMILAR_SCENES_TRANSPORT  - ``http`` (httpx) or ``stashapi`` (StashInterface)
  SIMILAR_SCENES_TIMEOUT    - request timeout in seconds
  SIMILAR_SCENES_LOG_LEVEL  - DEBUG, INFO, WARNING, ERROR
  DOCKER                    - rewrite loopback hosts to host.docker.internal
"""

_TRANSPORTS = {"http", "stashapi"}


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_transport() -> str:
    value = (os.getenv('SIMILAR_SCENES_TRANSPORT') or 'http').strip().lower()
    return value if value in _TRANSPORTS else 'http'


class Settings(BaseModel):
    app_name: str = 'Similar Scenes'
    version: str = __version__
    stash_url: str = os.getenv('STASH_URL', 'http://localhost:9999')
    stash_api_key: str | None = os.getenv('STASH_API_KEY') or None
    transport: str = _env_transport()
    request_timeout: float = _env_float('SIMILAR_SCENES_TIMEOUT', 30.0)
    log_level: str = os.getenv('SIMILAR_SCENES_LOG_LEVEL', 'INFO')
    docker_mode: bool = _env_flag('DOCKER')

settings = Settings()
