"""App settings, read from ``settings.TICKETING`` with defaults."""

from datetime import timedelta

from django.conf import settings

DEFAULTS = {
    "RESERVATION_TTL_SECONDS": 600,
    "EVENT_CACHE_TIMEOUT": 300,
}


def ticketing_setting(name: str):
    if name not in DEFAULTS:
        raise KeyError(f"Unknown ticketing setting: {name}")
    return getattr(settings, "TICKETING", {}).get(name, DEFAULTS[name])


def reservation_ttl() -> timedelta:
    return timedelta(seconds=int(ticketing_setting("RESERVATION_TTL_SECONDS")))
