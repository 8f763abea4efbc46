"""Resolve opaque image storage references for model backends.

Image refs are stored as ``bucket/path/to/file``. Flat-array backends get a
short-lived signed URL; session backends need the bytes inline, so the URL
is fetched and the SDK base64-encodes the payload on the wire.
"""

import asyncio
from dataclasses import dataclass
from typing import Any

import httpx

from app.core.exceptions import ImageResolutionError
from app.core.logging import get_logger

logger = get_logger(__name__)

_DEFAULT_MIME = "image/jpeg"


@dataclass(frozen=True)
class InlineImage:
    """Fetched image bytes for an ``inline_data`` part."""

    mime_type: str
    data: bytes


def split_image_ref(image_ref: str) -> tuple[str, str]:
    """Split ``bucket/path`` into (bucket, path)."""
    bucket, _, path = image_ref.strip("/").partition("/")
    if not bucket or not path:
        raise ImageResolutionError(image_ref, "expected 'bucket/path' reference")
    return bucket, path


class ImageResolver:
    """Turns storage references into signed URLs or inline bytes."""

    def __init__(self, supabase: Any, ttl_seconds: int = 60, timeout: float = 15.0):
        self._supabase = supabase
        self.ttl_seconds = ttl_seconds
        self.timeout = timeout

    async def signed_url(self, image_ref: str) -> str:
        """
        Create a short-lived signed URL for an image reference.

        Raises:
            ImageResolutionError: If storage refuses or returns no URL
        """
        bucket, path = split_image_ref(image_ref)
        try:
            result = await asyncio.to_thread(
                self._supabase.storage.from_(bucket).create_signed_url, path, self.ttl_seconds
            )
        except Exception as e:
            raise ImageResolutionError(image_ref, f"signed URL request failed: {e}") from e

        url = None
        if isinstance(result, dict):
            url = result.get("signedURL") or result.get("signedUrl") or result.get("signed_url")
        if not url:
            raise ImageResolutionError(image_ref, "storage returned no signed URL")

        logger.debug(f"Created signed URL for {bucket}/{path} (ttl={self.ttl_seconds}s)")
        return url

    async def fetch_inline(self, image_ref: str) -> InlineImage:
        """
        Fetch image bytes through a signed URL.

        Raises:
            ImageResolutionError: If the URL cannot be created or fetched
        """
        url = await self.signed_url(image_ref)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ImageResolutionError(image_ref, f"fetch failed ({e.response.status_code})") from e
        except httpx.HTTPError as e:
            raise ImageResolutionError(image_ref, f"fetch failed: {e}") from e

        if not response.content:
            raise ImageResolutionError(image_ref, "image body was empty")

        mime_type = response.headers.get("content-type", _DEFAULT_MIME).split(";")[0].strip()
        return InlineImage(
            mime_type=mime_type or _DEFAULT_MIME,
            data=response.content,
        )
