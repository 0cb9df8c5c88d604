from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

_HERE = Path(__file__).resolve()
_PROJECT_ROOT = _HERE.parents[1]


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def _list_env(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    store_dir: Path = _PROJECT_ROOT / "data" / "scans"
    no_cache_samples: int = 3
    cache_samples: int = 3
    timeout_ms: int = 15000
    scanner_region: str = "local"
    user_agent: str | None = None
    inbound_domain: str = ""
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:5173"])
    log_level: str = "INFO"


def load_settings() -> Settings:
    # Process environment wins over .env.
    load_dotenv(_PROJECT_ROOT / ".env", override=False)
    defaults = Settings()
    store_dir = os.getenv("SCAN_STORE_DIR", "").strip()
    return Settings(
        store_dir=Path(store_dir).resolve() if store_dir else defaults.store_dir,
        no_cache_samples=max(0, _int_env("SCAN_NO_CACHE_SAMPLES", defaults.no_cache_samples)),
        cache_samples=max(0, _int_env("SCAN_CACHE_SAMPLES", defaults.cache_samples)),
        timeout_ms=max(1000, _int_env("SCAN_TIMEOUT_MS", defaults.timeout_ms)),
        scanner_region=os.getenv("SCANNER_REGION", defaults.scanner_region),
        user_agent=os.getenv("SCAN_USER_AGENT") or None,
        inbound_domain=os.getenv("INBOUND_DOMAIN", defaults.inbound_domain).strip().lower(),
        cors_origins=_list_env("CRS_CORS_ORIGINS", defaults.cors_origins),
        log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
    )
