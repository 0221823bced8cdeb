"""Resolver that calls a remote unlocking service over HTTP with result caching."""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import urlparse

import requests

from unlocker_mcp.cache_manager import get_cache_manager
from unlocker_mcp.resolvers.base import Resolver, StageResult

# Configure logging
logger = logging.getLogger(__name__)

# Payload keys that may carry the next or final link, in priority order
LINK_FIELDS = ("best_download_link", "final_link", "extracted_link", "link")


def parse_payload(payload: Any) -> StageResult:
    """Convert a solver JSON payload into a StageResult.

    Args:
        payload: Decoded JSON body returned by the solver

    Returns:
        StageResult describing success or failure
    """
    if not isinstance(payload, dict):
        return StageResult.failure("Malformed solver response")

    if payload.get("status") != "success":
        return StageResult.failure(payload.get("message") or "Solver reported failure")

    next_url = next((payload[key] for key in LINK_FIELDS if payload.get(key)), None)
    if not next_url:
        return StageResult.failure("Solver returned no link")

    metadata: dict[str, Any] = {}
    if "best_button_name" in payload:
        metadata["best_button_name"] = payload.get("best_button_name")
    if "all_available_buttons" in payload:
        metadata["all_available_buttons"] = payload.get("all_available_buttons") or []

    return StageResult(
        success=True,
        url=next_url,
        message=payload.get("message"),
        metadata=metadata,
    )


class HttpResolver(Resolver):
    """Unlocking resolver backed by a remote ``GET {endpoint}?url=...`` service."""

    def __init__(
        self,
        name: str,
        endpoint: str,
        timeout: float = 20,
        max_retries: int = 2,
        retry_delay: float = 1.0,
        user_agent: str = "UnlockerMCP/1.0",
        cache_enabled: bool = True,
    ) -> None:
        """Initialize the HTTP resolver.

        Args:
            name: Resolver name used in logs and cache keys
            endpoint: Full URL of the solver endpoint
            timeout: Request timeout in seconds (default: 20)
            max_retries: Maximum number of retry attempts (default: 2)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            user_agent: User agent string sent to the solver
            cache_enabled: Cache successful results on disk (default: True)
        """
        self.name = name
        self.endpoint = endpoint
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.user_agent = user_agent
        self.cache_enabled = cache_enabled

        self.session = requests.Session()

        if cache_enabled:
            self.cache_manager = get_cache_manager()
        else:
            self.cache_manager = None

        logger.info(
            f"HttpResolver '{name}' initialized for {endpoint} "
            f"(caching {'enabled' if cache_enabled else 'disabled'})"
        )

    def supports_url(self, url: str) -> bool:
        """Check that the URL uses http or https."""
        try:
            parsed = urlparse(url)
            return parsed.scheme in ("http", "https")
        except Exception:
            return False

    async def resolve(self, url: str, **kwargs: Any) -> StageResult:
        """Call the solver endpoint for a URL with caching and retry logic.

        Args:
            url: The URL to unlock
            **kwargs: Additional options
                - timeout: Request timeout in seconds
                - max_retries: Maximum number of retry attempts

        Returns:
            StageResult parsed from the solver response

        Raises:
            requests.RequestException: If the request fails after all retries
        """
        timeout = kwargs.get("timeout", self.timeout)
        max_retries = kwargs.get("max_retries", self.max_retries)

        if not self.supports_url(url):
            return StageResult.failure(f"Unsupported URL: {url}")

        if self.cache_manager is not None:
            cached = self.cache_manager.get_result(self.name, url)
            if cached is not None:
                logger.debug(f"[{self.name}] cache HIT for {url}")
                return cached

        headers = {"User-Agent": self.user_agent}
        params = {"url": url}

        attempt = 0
        while True:
            try:
                loop = asyncio.get_running_loop()
                response = await loop.run_in_executor(
                    None,
                    lambda: self.session.get(
                        self.endpoint, params=params, headers=headers, timeout=timeout
                    ),
                )
                response.raise_for_status()
                result = parse_payload(response.json())
                break
            except (requests.Timeout, requests.ConnectionError) as e:
                attempt += 1
                if attempt > max_retries:
                    raise

                delay = self.retry_delay * (2 ** (attempt - 1))
                logger.debug(
                    f"[{self.name}] retry {attempt}/{max_retries} for {url} "
                    f"after {delay:.2f}s ({type(e).__name__})"
                )
                await asyncio.sleep(delay)

        if self.cache_manager is not None:
            self.cache_manager.put_result(self.name, url, result)

        return result
