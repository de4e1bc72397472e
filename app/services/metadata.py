"""
Best-effort token metadata lookup. Never raises; callers fall back to the
values stored on the campaign.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

import requests

from app.core.config import settings
from app.models.campaign import Campaign

logger = logging.getLogger(__name__)

MetadataFetcher = Callable[[str], Optional["TokenMetadata"]]


@dataclass
class TokenMetadata:
    name: Optional[str] = None
    symbol: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None


def metadata_from_payload(payload: Any) -> Optional[TokenMetadata]:
    """Keep only the string fields we know about."""
    if not isinstance(payload, dict):
        return None

    def text(key: str) -> Optional[str]:
        value = payload.get(key)
        return value if isinstance(value, str) and value else None

    return TokenMetadata(
        name=text("name"),
        symbol=text("symbol"),
        description=text("description"),
        image=text("image"),
    )


def fetch_metadata(uri: str) -> Optional[TokenMetadata]:
    try:
        response = requests.get(uri, timeout=settings.METADATA_TIMEOUT_SECONDS)
        if response.status_code != 200:
            logger.warning("metadata fetch %s returned %s", uri, response.status_code)
            return None
        return metadata_from_payload(response.json())
    except (requests.RequestException, ValueError) as e:
        logger.warning("metadata fetch %s failed: %s", uri, e)
        return None


def get_metadata_fetcher() -> MetadataFetcher:
    return fetch_metadata


def resolve_campaign_metadata(campaign: Campaign, fetcher: MetadataFetcher) -> dict:
    uri = campaign.resolved_metadata_uri
    upstream = fetcher(uri) or TokenMetadata()
    return {
        "metadata_uri": uri,
        "name": upstream.name or campaign.display_name,
        "symbol": upstream.symbol or campaign.symbol,
        "description": upstream.description or campaign.description,
        "image": upstream.image,
    }
