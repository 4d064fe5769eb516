"""
Immich API integration.

Provides the authenticated transport, response decoders, rendition lookup and
timeline aggregation.
"""

from immich_bridge.immich.api import ImmichClient
from immich_bridge.immich.models import Album, Asset, AssetType, Tag, TimeBucket
from immich_bridge.immich.timeline import TimelineAggregator, TimelineFilters, TimelinePage
from immich_bridge.immich.transport import BinaryPayload, UpstreamTransport
from immich_bridge.immich.variants import Variant, VariantResolver

__all__ = [
    "ImmichClient",
    "Album",
    "Asset",
    "AssetType",
    "Tag",
    "TimeBucket",
    "TimelineAggregator",
    "TimelineFilters",
    "TimelinePage",
    "BinaryPayload",
    "UpstreamTransport",
    "Variant",
    "VariantResolver",
]
