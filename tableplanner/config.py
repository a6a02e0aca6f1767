import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv("config.env")


def _as_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return val.strip().lower() in {"1", "true", "yes", "y", "on"}


def _as_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _weights() -> dict:
    return {
        "capacity_fit": _as_float("SCORE_WEIGHT_CAPACITY", 1.0),
        "area_match": _as_float("SCORE_WEIGHT_AREA", 1.0),
        "shape_match": _as_float("SCORE_WEIGHT_SHAPE", 1.0),
        "location_match": _as_float("SCORE_WEIGHT_LOCATION", 1.0),
        "accessibility": _as_float("SCORE_WEIGHT_ACCESSIBILITY", 1.0),
    }


@dataclass
class Settings:
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./tableplanner.db")
    default_duration_minutes: int = int(os.getenv("DEFAULT_DURATION_MINUTES", "120"))
    min_party_size: int = int(os.getenv("MIN_PARTY_SIZE", "1"))
    max_party_size: int = int(os.getenv("MAX_PARTY_SIZE", "50"))
    # Table scorer / combiner
    max_alternatives: int = int(os.getenv("MAX_ALTERNATIVES", "5"))
    max_combinations: int = int(os.getenv("MAX_COMBINATIONS", "3"))
    large_party_threshold: int = int(os.getenv("LARGE_PARTY_THRESHOLD", "0"))
    score_weights: dict = field(default_factory=_weights)
    # Time suggestions
    suggestion_window_minutes: int = int(os.getenv("SUGGESTION_WINDOW_MINUTES", "120"))
    suggestion_step_minutes: int = int(os.getenv("SUGGESTION_STEP_MINUTES", "30"))
    best_times_start: str = os.getenv("BEST_TIMES_START", "18:00")
    best_times_end: str = os.getenv("BEST_TIMES_END", "23:00")
    # Waitlist
    waitlist_hour_tolerance: int = int(os.getenv("WAITLIST_PREFERRED_HOUR_TOLERANCE", "2"))
    waitlist_expiry_interval_seconds: float = _as_float("WAITLIST_EXPIRY_INTERVAL_SECONDS", 300)
    notify_waitlist_offers: bool = _as_bool(os.getenv("NOTIFY_WAITLIST_OFFERS"), True)
    # Display-only cache for CheckAvailability
    availability_cache_ttl_seconds: float = _as_float("AVAILABILITY_CACHE_TTL_SECONDS", 120)


settings = Settings()
