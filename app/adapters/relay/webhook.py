"""Webhook image relay adapter."""

import logging
from typing import Any

import httpx

from app.adapters.relay.base import AbstractImageRelay
from app.core.errors import RelayAppError
from app.utils.image_payload import extract_image_base64, summarize_response

logger = logging.getLogger(__name__)


class WebhookImageRelay(AbstractImageRelay):
    """Client posting room/rug image URLs to the generation webhook.

    Image URLs are sent instead of file bodies so large photos do not hit
    the webhook's request size limit.
    """

    def __init__(
        self,
        webhook_url: str,
        timeout_seconds: float = 600.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the relay.

        Args:
            webhook_url: Endpoint receiving the multipart form.
            timeout_seconds: Total timeout; generation can take minutes.
            transport: Optional httpx transport (tests use MockTransport).
        """
        self.webhook_url = webhook_url
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def generate(self, prompt: str, *, room_url: str, rug_url: str) -> str:
        """Post the form and return the base64 image from the response.

        Raises:
            RelayAppError: On transport errors, timeouts, non-200 status,
                invalid JSON or a response without an image.
        """
        form = {
            "prompt": prompt,
            "room_image_url": room_url,
            "rug_image_url": rug_url,
        }

        logger.info(
            "relay.request",
            extra={"webhook_url": self.webhook_url, "room_url": room_url, "rug_url": rug_url},
        )

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds,
                transport=self._transport,
            ) as client:
                # (None, value) parts make httpx send multipart/form-data fields
                response = await client.post(
                    self.webhook_url,
                    files={name: (None, value) for name, value in form.items()},
                )
        except httpx.TimeoutException as exc:
            raise RelayAppError(
                code="relay_timeout",
                message="Image generation timed out. Please try again.",
            ) from exc
        except httpx.HTTPError as exc:
            raise RelayAppError(
                code="relay_unavailable",
                message=f"Image generation request failed: {exc}",
            ) from exc

        if response.status_code != 200:
            raise RelayAppError(
                code="relay_bad_status",
                message=f"Image generation service returned HTTP {response.status_code}",
                details={"http_status": response.status_code},
            )

        try:
            payload: Any = response.json()
        except ValueError as exc:
            raise RelayAppError(
                code="relay_invalid_json",
                message="Image generation service returned invalid JSON",
            ) from exc

        image = extract_image_base64(payload)
        summary = summarize_response(payload, image)
        if not image:
            logger.warning("relay.no_image", extra={"response_summary": summary})
            raise RelayAppError(
                code="relay_no_image",
                message="Image generation service did not return an image",
                details={"response_summary": summary},
            )

        logger.info("relay.success", extra={"response_summary": summary})
        return image
