import os
from pathlib import Path
from typing import Final


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


class _Config:
    def __init__(self) -> None:
        # Backend
        self.api_base_url: str = os.getenv("TRIPSTREAM_API_URL", "http://localhost:8000/api").rstrip("/")
        self.auth_token: str | None = os.getenv("TRIPSTREAM_AUTH_TOKEN")
        self.user_agent: str = os.getenv("TRIPSTREAM_USER_AGENT", "TripStream-Client")

        # HTTP behavior; generation jobs are slow, so streaming gets a far larger budget
        self.request_timeout_sec: float = _float_env("HTTP_TIMEOUT_SEC", 30.0)
        self.stream_timeout_sec: float = _float_env("STREAM_TIMEOUT_SEC", 600.0)

        # Plan cache
        self.cache_ttl_sec: float = _float_env("CACHE_TTL_SEC", 24 * 60 * 60.0)
        self.cache_max_entries: int = _int_env("CACHE_MAX_ENTRIES", 20)
        self.cache_hit_delay_sec: float = _float_env("CACHE_HIT_DELAY_SEC", 0.3)
        self.cache_path: Path = Path(
            os.getenv("TRIPSTREAM_CACHE_PATH", str(Path.home() / ".tripstream" / "plan-cache.json"))
        ).expanduser()


CONFIG: Final[_Config] = _Config()
