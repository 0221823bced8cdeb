"""Admin service layer for configuration and stats management."""

from __future__ import annotations

import logging
import os
from typing import Any

from unlocker_mcp.cache_manager import get_cache_manager
from unlocker_mcp.metrics import get_metrics

logger = logging.getLogger(__name__)

# Link domains that need the timer bypass and run sequentially
DEFAULT_TIMER_DOMAINS = ["gadgetsweb", "review-tech", "ngwin", "cryptoinsights"]

# Link domains the bypass loop stops on
DEFAULT_TARGET_DOMAINS = ["hblinks", "hubdrive", "hubcdn", "hubcloud", "gdflix", "drivehub"]

DEFAULT_LINK_TIMEOUT = 25.0  # seconds per chain attempt
DEFAULT_TIME_BUDGET = 45.0  # seconds for the sequential class per invocation
DEFAULT_STAGE_TIMEOUT = 20.0  # seconds per solver HTTP request
DEFAULT_STAGE_MAX_RETRIES = 2

# Remote solver endpoints
TIMER_API = os.getenv("TIMER_API", "http://localhost:10000")
SOLVER_API = os.getenv("SOLVER_API", "http://localhost:5001")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={value!r}, using {default}")
        return default


def _env_list(name: str, default: list[str]) -> list[str]:
    value = os.getenv(name)
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


_defaults: dict[str, Any] = {
    "link_timeout": DEFAULT_LINK_TIMEOUT,
    "time_budget": DEFAULT_TIME_BUDGET,
    "stage_timeout": DEFAULT_STAGE_TIMEOUT,
    "stage_max_retries": DEFAULT_STAGE_MAX_RETRIES,
    "timer_domains": DEFAULT_TIMER_DOMAINS,
    "target_domains": DEFAULT_TARGET_DOMAINS,
    "cache_enabled": True,
}

# Runtime configuration overrides (not persisted)
_runtime_config: dict[str, Any] = {
    "link_timeout": _env_float("LINK_TIMEOUT", DEFAULT_LINK_TIMEOUT),
    "time_budget": _env_float("TIME_BUDGET", DEFAULT_TIME_BUDGET),
    "stage_timeout": _env_float("STAGE_TIMEOUT", DEFAULT_STAGE_TIMEOUT),
    "stage_max_retries": DEFAULT_STAGE_MAX_RETRIES,
    "timer_domains": _env_list("TIMER_DOMAINS", DEFAULT_TIMER_DOMAINS),
    "target_domains": _env_list("TARGET_DOMAINS", DEFAULT_TARGET_DOMAINS),
    "cache_enabled": os.getenv("RESOLUTION_CACHE", "true").lower() in ("true", "1", "yes"),
}


def get_config(key: str, default: Any = None) -> Any:
    """Get a configuration value with runtime override support.

    Args:
        key: Configuration key
        default: Default value if key not found

    Returns:
        Configuration value or default
    """
    return _runtime_config.get(key, default)


def get_stats() -> dict[str, Any]:
    """Get server statistics and metrics.

    Returns:
        Dictionary with resolution metrics and cache stats
    """
    stats = get_metrics().to_dict()

    try:
        cache_manager = get_cache_manager()
        # Drop expired resolutions so entry counts reflect live entries
        cache_manager.expire()
        stats["cache"] = cache_manager.get_stats()
    except Exception:
        stats["cache"] = {"error": "Cache stats unavailable"}

    return stats


def get_current_config() -> dict[str, Any]:
    """Get current runtime configuration with its defaults."""
    return {
        "config": _runtime_config,
        "defaults": _defaults,
        "note": "Changes are not persisted and will reset on server restart",
    }


def _is_domain_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) and v for v in value)


def update_config(config_updates: dict[str, Any]) -> dict[str, Any]:
    """Update runtime configuration.

    Invalid keys or values are skipped rather than rejected.

    Args:
        config_updates: Dictionary of config key-value pairs to update

    Returns:
        Dictionary with status, message, updated keys, and current config
    """
    updated = []
    for key, value in config_updates.items():
        if key in ("link_timeout", "time_budget", "stage_timeout"):
            if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
                _runtime_config[key] = float(value)
                updated.append(key)
        elif key == "stage_max_retries":
            if isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 5:
                _runtime_config[key] = value
                updated.append(key)
        elif key in ("timer_domains", "target_domains"):
            if _is_domain_list(value):
                _runtime_config[key] = list(value)
                updated.append(key)
        elif key == "cache_enabled" and isinstance(value, bool):
            _runtime_config[key] = value
            updated.append(key)

    if updated:
        logger.info(f"Runtime config updated: {', '.join(updated)}")

    return {
        "status": "success",
        "message": f"Updated {len(updated)} config value(s)",
        "updated": updated,
        "current_config": _runtime_config,
    }


def clear_cache() -> dict[str, Any]:
    """Clear all resolution cache entries."""
    removed = get_cache_manager().clear()
    return {
        "status": "success",
        "message": f"Cleared {removed} cached resolution(s)",
        "removed": removed,
    }
