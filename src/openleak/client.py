"""
OpenLeak API Client Module

Minimal synchronous client for the two OpenLeak proxy endpoints this tool
talks to. Every call is a single blocking request; there are no retries.

OpenLeak API Endpoints Used:
- POST /api/generate-key - Issue a new free API key (no body)
- POST /v1/messages - Anthropic-format chat call, used to verify a key
"""

import logging
from typing import Optional

import requests

from openleak import __version__

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class OpenLeakClient:
    """
    Minimal synchronous client for the OpenLeak proxy.

    Responses are returned as-is; interpreting status codes and bodies is
    left to the caller. Transport failures raise requests exceptions.

    Args:
        base_url: Proxy base URL (e.g. https://openleak.fun)
        timeout: Request timeout in seconds (default: None, no limit)

    Example:
        >>> client = OpenLeakClient("https://openleak.fun")
        >>> response = client.generate_key()
        >>> response.status_code
        200
    """

    def __init__(self, base_url: str, timeout: Optional[float] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": f"openleak-setup/{__version__}",
        }
        logger.debug(f"OpenLeakClient initialized: base_url={self.base_url}, timeout={timeout}")

    def generate_key(self) -> requests.Response:
        """
        Request a new API key from the issuance endpoint.

        Returns:
            Raw response; 200 carries {"key": ..., "remaining": ...},
            429 means the daily quota is used up

        Raises:
            RequestException: For connection-level failures
        """
        url = f"{self.base_url}/api/generate-key"
        logger.debug(f"POST {url}")
        response = requests.post(url, headers=self.headers, timeout=self.timeout)
        logger.debug(f"Key issuance responded with HTTP {response.status_code}")
        return response

    def send_message(
        self,
        api_key: str,
        prompt: str = "ping",
        model: str = "claude-sonnet-4-5",
        max_tokens: int = 8,
    ) -> requests.Response:
        """
        Send a minimal Anthropic-format message through the proxy.

        Args:
            api_key: Key sent in the x-api-key header
            prompt: User message content
            model: Model id as exposed by the proxy
            max_tokens: Output token cap

        Returns:
            Raw response

        Raises:
            RequestException: For connection-level failures
        """
        url = f"{self.base_url}/v1/messages"
        headers = dict(self.headers)
        headers["x-api-key"] = api_key
        headers["anthropic-version"] = ANTHROPIC_VERSION

        payload = {
            "model": model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }

        logger.debug(f"POST {url} (model={model}, max_tokens={max_tokens})")
        response = requests.post(url, headers=headers, json=payload, timeout=self.timeout)
        logger.debug(f"Messages endpoint responded with HTTP {response.status_code}")
        return response
