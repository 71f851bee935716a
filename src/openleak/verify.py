"""Live verification of a configured key."""

from typing import Optional

from requests.exceptions import RequestException

from openleak.client import OpenLeakClient
from openleak.config import MODEL_ID, SetupSettings
from openleak.logging import get_logger

logger = get_logger(__name__)


def verify_key(api_key: str, settings: SetupSettings, client: Optional[OpenLeakClient] = None) -> bool:
    """Send one tiny message through the proxy to check the key works.

    Never raises. Any failure is logged as a warning and reported as False;
    the configuration already written is left as it is.

    Args:
        api_key: Key to test
        settings: Settings for this run
        client: Client to use (default: built from settings)

    Returns:
        True if the proxy answered with a message, False otherwise
    """
    if client is None:
        client = OpenLeakClient(settings.base_url, timeout=settings.timeout)

    try:
        response = client.send_message(api_key, model=MODEL_ID)
    except (RequestException, ValueError) as e:
        # ValueError covers header values http.client cannot encode (non latin-1 keys)
        logger.warning(f"Verification request failed: {e}")
        return False

    if response.status_code == 200:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and (body.get("type") == "message" or body.get("content")):
            logger.info("Key verified")
            return True

    logger.warning(f"Unexpected verification response (HTTP {response.status_code}): {response.text[:400]}")
    return False
