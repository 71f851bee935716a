"""API key sources.

An OpenLeak key comes either from the environment or from the proxy's
issuance endpoint. Each origin is a KeySource; resolve_api_key() asks the
sources in order and uses the first key it gets.
"""

import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Mapping, Optional

from openleak.client import OpenLeakClient
from openleak.config import SetupSettings
from openleak.logging import get_logger

logger = get_logger(__name__)

KEY_PREFIX = "sk-cl-"


class KeySourceError(Exception):
    """Base class for failures to obtain an API key."""


class KeyUnavailableError(KeySourceError):
    """No source produced a key."""


class KeyIssuanceError(KeySourceError):
    """The issuance endpoint returned something other than a key."""


class RateLimitError(KeySourceError):
    """The issuance endpoint refused with HTTP 429."""

    def __init__(self, reset_at: Optional[datetime] = None):
        self.reset_at = reset_at
        super().__init__("Daily key limit reached")

    def seconds_until_reset(self, now: Optional[datetime] = None) -> Optional[int]:
        """Seconds left until the quota resets, None if the reset time is unknown."""
        if self.reset_at is None:
            return None
        if now is None:
            now = datetime.now(timezone.utc)
        return max(0, int((self.reset_at - now).total_seconds()))


@dataclass
class ApiKey:
    """An API key and where it came from."""

    value: str
    source: str
    remaining: Optional[int] = None

    @property
    def masked(self) -> str:
        return f"{self.value[:12]}…"

    @property
    def has_expected_format(self) -> bool:
        return self.value.startswith(KEY_PREFIX)


def parse_reset(value) -> Optional[datetime]:
    """Convert a rate-limit reset timestamp into an aware datetime.

    Numbers above 1e12 are treated as epoch milliseconds, smaller numbers
    as epoch seconds. Anything else yields None.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if value > 1e12:
        value = value / 1000.0
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


class KeySource(ABC):
    """Abstract origin of an API key.

    Implementations return None when they have no key to offer and raise
    a KeySourceError when obtaining one failed outright.
    """

    name = "unknown"

    @abstractmethod
    def get_key(self) -> Optional[ApiKey]:
        """Return a key, or None if this source has none.

        Raises:
            KeySourceError: If the source failed in a way that must stop the run
        """
        pass


class EnvironmentKeySource(KeySource):
    """Key taken from an environment variable."""

    name = "environment"

    def __init__(self, env_var: str, environ: Optional[Mapping[str, str]] = None):
        self.env_var = env_var
        self.environ = os.environ if environ is None else environ

    def get_key(self) -> Optional[ApiKey]:
        value = (self.environ.get(self.env_var) or "").strip()
        if not value:
            logger.debug(f"{self.env_var} is not set")
            return None
        logger.info(f"Using key from {self.env_var}")
        return ApiKey(value=value, source=self.name)


class RemoteKeySource(KeySource):
    """Key issued by the proxy's /api/generate-key endpoint."""

    name = "generated"

    def __init__(self, client: OpenLeakClient):
        self.client = client

    def get_key(self) -> Optional[ApiKey]:
        """Request a fresh key.

        Raises:
            RateLimitError: On HTTP 429
            KeyIssuanceError: On any other unexpected response
        """
        logger.info("Requesting a new key from the issuance endpoint")
        response = self.client.generate_key()

        if response.status_code == 429:
            reset_at = None
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                reset_at = parse_reset(body.get("reset"))
            logger.warning(f"Key issuance rate limited (reset at {reset_at})")
            raise RateLimitError(reset_at)

        if response.status_code != 200:
            logger.error(f"Key issuance failed with HTTP {response.status_code}: {response.text[:400]}")
            raise KeyIssuanceError(f"Unexpected response from key endpoint (HTTP {response.status_code})")

        try:
            body = response.json()
        except ValueError:
            raise KeyIssuanceError("Unexpected response from key endpoint (invalid JSON)")

        if not isinstance(body, dict) or not isinstance(body.get("key"), str) or not body["key"].strip():
            raise KeyIssuanceError("Unexpected response from key endpoint (no key in body)")

        remaining = body.get("remaining")
        if isinstance(remaining, bool) or not isinstance(remaining, int):
            remaining = None

        logger.info(f"Received a new key ({remaining} remaining today)")
        return ApiKey(value=body["key"].strip(), source=self.name, remaining=remaining)


def default_key_sources(settings: SetupSettings, generate: bool = True,
                        environ: Optional[Mapping[str, str]] = None) -> List[KeySource]:
    """Key sources in lookup order.

    Args:
        settings: Settings for this run
        generate: Fall back to the issuance endpoint when the environment has no key
        environ: Environment mapping (default: os.environ)

    Returns:
        List of key sources, environment first
    """
    sources: List[KeySource] = [EnvironmentKeySource(settings.env_var, environ)]
    if generate:
        sources.append(RemoteKeySource(OpenLeakClient(settings.base_url, timeout=settings.timeout)))
    return sources


def resolve_api_key(sources: List[KeySource]) -> ApiKey:
    """Ask each source in turn and return the first key found.

    Raises:
        KeyUnavailableError: If no source produced a key
        KeySourceError: Propagated from a failing source
    """
    for source in sources:
        start_time = time.time()
        key = source.get_key()
        logger.debug(f"Key source '{source.name}' answered in {time.time() - start_time:.2f}s")
        if key is not None:
            return key

    raise KeyUnavailableError("No API key available")
