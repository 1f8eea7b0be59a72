from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List

DEFAULT_API_URL = "http://localhost:3000/api"


@dataclass(frozen=True)
class Settings:
    api_url: str
    api_timeout: float
    backend_mode: str
    allowed_origins: List[str]


def load_settings() -> Settings:
    return Settings(
        api_url=os.environ.get("ORDERING_API_URL", DEFAULT_API_URL),
        api_timeout=float(os.environ.get("ORDERING_API_TIMEOUT", "5")),
        backend_mode=os.environ.get("BACKEND_MODE", "http").lower(),
        allowed_origins=[
            origin.strip() for origin in os.environ.get("ALLOWED_ORIGINS", "*").split(",")
        ],
    )
