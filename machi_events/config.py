from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

DEFAULT_TIMEZONE = "Asia/Tokyo"


def _get_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = (env.get(key) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise EnvironmentError(f"{key} must be an integer, got {raw!r}")


def _get_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = (env.get(key) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise EnvironmentError(f"{key} must be a number, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    """
    Process-wide configuration, built once at startup and passed explicitly
    into the orchestrator and the alert dispatcher.
    """

    supabase_url: str
    supabase_service_role_key: str
    slack_webhook_url: Optional[str] = None
    timezone: str = DEFAULT_TIMEZONE

    max_workers: int = 8
    fetch_timeout_s: float = 10.0

    retry_max_attempts: int = 3
    retry_base_delay_s: float = 1.0
    retry_max_delay_s: float = 30.0

    drift_min_samples: int = 3
    drift_window: int = 10
    drift_drop_ratio: float = 0.5
    drift_invalid_ratio: float = 0.5

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        if env is None:
            load_dotenv()
            env = os.environ

        url = (env.get("SUPABASE_URL") or "").strip()
        key = (env.get("SUPABASE_SERVICE_ROLE_KEY") or "").strip()

        # Fail fast if required env vars are missing
        missing = []
        if not url:
            missing.append("SUPABASE_URL")
        if not key:
            missing.append("SUPABASE_SERVICE_ROLE_KEY")
        if missing:
            raise EnvironmentError(
                f"Missing required environment variables: {', '.join(missing)}. "
                "Copy .env.example to .env and fill in your Supabase credentials."
            )

        return cls(
            supabase_url=url,
            supabase_service_role_key=key,
            slack_webhook_url=(env.get("SLACK_WEBHOOK_URL") or "").strip() or None,
            timezone=(env.get("TIMEZONE") or "").strip() or DEFAULT_TIMEZONE,
            max_workers=max(1, _get_int(env, "MACHI_MAX_WORKERS", 8)),
            fetch_timeout_s=_get_float(env, "MACHI_FETCH_TIMEOUT_S", 10.0),
            retry_max_attempts=max(1, _get_int(env, "MACHI_RETRY_MAX_ATTEMPTS", 3)),
            retry_base_delay_s=_get_float(env, "MACHI_RETRY_BASE_DELAY_S", 1.0),
            retry_max_delay_s=_get_float(env, "MACHI_RETRY_MAX_DELAY_S", 30.0),
            drift_min_samples=_get_int(env, "MACHI_DRIFT_MIN_SAMPLES", 3),
            drift_window=_get_int(env, "MACHI_DRIFT_WINDOW", 10),
            drift_drop_ratio=_get_float(env, "MACHI_DRIFT_DROP_RATIO", 0.5),
            drift_invalid_ratio=_get_float(env, "MACHI_DRIFT_INVALID_RATIO", 0.5),
        )
