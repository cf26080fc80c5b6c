"""Image relay adapter layer - abstracts over the remote generation service."""

from app.adapters.relay.base import AbstractImageRelay
from app.adapters.relay.factory import create_image_relay
from app.adapters.relay.webhook import WebhookImageRelay

__all__ = [
    "AbstractImageRelay",
    "WebhookImageRelay",
    "create_image_relay",
]
