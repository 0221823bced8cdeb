"""Base resolver interface for link unlocking stages."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class StageResult:
    """Result from a single unlocking transform."""

    success: bool
    url: str | None = None
    message: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failure(cls, message: str) -> StageResult:
        return cls(success=False, url=None, message=message)


class Resolver(ABC):
    """Abstract base class for unlocking resolvers."""

    name: str = "resolver"

    @abstractmethod
    async def resolve(self, url: str, **kwargs: Any) -> StageResult:
        """Unlock a URL into its next intermediate or final link.

        Args:
            url: The URL to unlock
            **kwargs: Additional resolver-specific options

        Returns:
            StageResult with the next or final URL on success
        """
        pass

    @abstractmethod
    def supports_url(self, url: str) -> bool:
        """Check if this resolver can be called with the given URL.

        Args:
            url: The URL to check

        Returns:
            True if this resolver can handle the URL
        """
        pass
