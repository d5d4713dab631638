"""FastAPI dependencies exposing the process-wide configuration objects.

Settings and the Strategy Registry are attached to ``app.state`` once by
``create_app``. A Resolver is built per request and holds no state of its own.
"""

from collections.abc import Callable

from fastapi import Request

from medialink.core.config import Settings
from medialink.services.resolver import Resolver
from medialink.services.stream_delivery import AudioDelivery

DeliveryFactory = Callable[[str, str], AudioDelivery]


def get_resolver(request: Request) -> Resolver:
    return Resolver(request.app.state.registry)


def get_delivery_factory(request: Request) -> DeliveryFactory:
    settings: Settings = request.app.state.settings

    def build(source_url: str, title: str) -> AudioDelivery:
        return AudioDelivery.from_settings(settings, source_url, title)

    return build


def get_passthrough_delivery_factory(request: Request) -> DeliveryFactory:
    """Like ``get_delivery_factory`` but relays the source audio without transcoding."""
    settings: Settings = request.app.state.settings

    def build(source_url: str, title: str) -> AudioDelivery:
        return AudioDelivery.from_settings(settings, source_url, title, transcode=False)

    return build
