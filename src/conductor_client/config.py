import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

API_BASE_KEY = "CONDUCTOR_API_BASE"
TOKEN_KEY = "CONDUCTOR_SESSION_TOKEN"
RUNS_POLL_KEY = "CONDUCTOR_RUNS_POLL_SEC"
STATS_POLL_KEY = "CONDUCTOR_STATS_POLL_SEC"
CONNECT_TIMEOUT_KEY = "CONDUCTOR_CONNECT_TIMEOUT_SEC"
READ_TIMEOUT_KEY = "CONDUCTOR_READ_TIMEOUT_SEC"
GET_RETRIES_KEY = "CONDUCTOR_GET_RETRIES"

DEFAULT_API_BASE = "http://127.0.0.1:8745/v1"
DEFAULT_CONFIG_DIR = Path.home() / ".config" / "conductor-client"


@dataclass
class ClientConfig:
    api_base: str
    session_token: str
    config_dir: Path
    env_path: Path
    runs_poll_sec: float = 3.0
    stats_poll_sec: float = 5.0
    connect_timeout_sec: float = 5.0
    read_timeout_sec: float = 30.0
    get_retries: int = 3


def load_env_file(path: Path) -> Dict[str, str]:
    data: Dict[str, str] = {}
    if not path.exists():
        return data
    try:
        for line in path.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            k, v = line.split("=", 1)
            data[k.strip()] = v.strip().strip('"').strip("'")
    except OSError as exc:
        logger.warning("Failed to read %s: %s", path, exc)
    return data


def get_env_value(key: str, env_file: Dict[str, str]) -> Optional[str]:
    return os.environ.get(key) or env_file.get(key)


def get_env_path(config_dir: Path) -> Path:
    return config_dir / ".env"


def _read_float(key: str, env_file: Dict[str, str], default: float, minimum: float) -> float:
    raw = get_env_value(key, env_file)
    if raw is None or not raw.strip():
        return default
    try:
        return max(minimum, float(raw))
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r", key, raw)
        return default


def _read_int(key: str, env_file: Dict[str, str], default: int, minimum: int) -> int:
    raw = get_env_value(key, env_file)
    if raw is None or not raw.strip():
        return default
    try:
        return max(minimum, int(raw))
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r", key, raw)
        return default


def load_config(config_dir: Path = DEFAULT_CONFIG_DIR) -> ClientConfig:
    env_path = get_env_path(config_dir)
    env_file = load_env_file(env_path)

    api_base = (get_env_value(API_BASE_KEY, env_file) or DEFAULT_API_BASE).rstrip("/")
    token = (get_env_value(TOKEN_KEY, env_file) or "").strip()
    if not token:
        logger.warning("%s is not set; requests will be sent without a session token.", TOKEN_KEY)

    return ClientConfig(
        api_base=api_base,
        session_token=token,
        config_dir=config_dir,
        env_path=env_path,
        runs_poll_sec=_read_float(RUNS_POLL_KEY, env_file, 3.0, 0.5),
        stats_poll_sec=_read_float(STATS_POLL_KEY, env_file, 5.0, 0.5),
        connect_timeout_sec=_read_float(CONNECT_TIMEOUT_KEY, env_file, 5.0, 0.1),
        read_timeout_sec=_read_float(READ_TIMEOUT_KEY, env_file, 30.0, 0.1),
        get_retries=_read_int(GET_RETRIES_KEY, env_file, 3, 1),
    )
