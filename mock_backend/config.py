import os
from typing import Final


class _Config:
    def __init__(self) -> None:
        # Security / limits
        self.api_token: str | None = os.getenv("BACKEND_API_TOKEN")
        self.rate_limit: str = os.getenv("BACKEND_RATE_LIMIT", "120/minute")

        # Simulated generation pace between streamed steps
        try:
            self.step_delay_sec: float = float(os.getenv("BACKEND_STEP_DELAY_SEC", "0.5"))
        except ValueError:
            self.step_delay_sec = 0.5


CONFIG: Final[_Config] = _Config()
