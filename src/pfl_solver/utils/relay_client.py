import json
import logging
from typing import Any

import httpx

from ..models import Bundle, RelayError, RelayOk, RelayResponse

logger = logging.getLogger(__name__)


class RelayClient:
    """Client for the FastLane PFL relay.

    Posts JSON-RPC bundles and decodes every response body into a
    tagged ``RelayOk | RelayError`` result.
    """

    def __init__(self, url: str, timeout: float = 30.0) -> None:
        """Initialize the relay client.

        Args:
            url: Relay endpoint URL
            timeout: HTTP timeout for a single POST in seconds
        """
        if not url:
            raise ValueError("Relay URL is required")
        self.url: str = url
        self.timeout: float = timeout

    async def _post(self, payload: Any) -> Any:
        """Post a JSON payload to the relay.

        Args:
            payload: JSON payload to send

        Returns:
            Decoded JSON response body

        Raises:
            httpx.HTTPStatusError: If the relay answers with a non-2xx status
            httpx.HTTPError: On transport failures and timeouts
        """
        async with httpx.AsyncClient() as client:
            logger.debug(f"Posting to {self.url}: {json.dumps(payload)}")
            response: httpx.Response = await client.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            return response.json()

    @staticmethod
    def decode_response(body: Any) -> RelayResponse:
        """
        Decode a relay response body into a tagged result.

        Args:
            body: JSON-decoded response body

        Returns:
            RelayOk for ``{"result": ...}`` bodies, RelayError for error bodies
        """
        match body:
            case {"error": {"message": message, **rest}}:
                return RelayError(message=str(message), code=rest.get("code"))
            case {"error": error} if error is not None:
                return RelayError(message=str(error))
            case {"result": result}:
                return RelayOk(result=result)
            case _:
                logger.warning(f"Unknown relay response format: {body}")
                # No error field means the relay accepted the bundle
                return RelayOk(result=body)

    async def send_bundle(self, bundle: Bundle) -> RelayResponse:
        """
        Submit a bundle to the relay.

        Args:
            bundle: Bundle to submit

        Returns:
            Decoded relay response
        """
        logger.info("Submitting bundle to FastLane relay...")
        body = await self._post(bundle.to_payload())
        logger.info(f"Bundle submitted. Relay response: {body}")
        return self.decode_response(body)
