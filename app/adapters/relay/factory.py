"""Factory for creating image relay instances."""

from app.adapters.relay.base import AbstractImageRelay
from app.adapters.relay.webhook import WebhookImageRelay
from app.core.config import settings
from app.core.errors import ConfigurationAppError


def create_image_relay() -> AbstractImageRelay:
    """Instantiate the image relay from settings.

    Returns:
        AbstractImageRelay: Configured relay instance.

    Raises:
        ConfigurationAppError: If the webhook URL is missing or not HTTP(S).
    """
    url = (settings.relay.webhook_url or "").strip()

    if not url:
        raise ConfigurationAppError(
            code="relay_missing_url",
            message="Image relay requires RELAY_WEBHOOK_URL",
        )
    if not url.startswith(("http://", "https://")):
        raise ConfigurationAppError(
            code="relay_invalid_url",
            message=f"RELAY_WEBHOOK_URL must be an http(s) URL, got '{url}'",
        )

    return WebhookImageRelay(
        webhook_url=url,
        timeout_seconds=settings.relay.timeout_seconds,
    )
