"""Image URL resolution for ``generate_image``.

Resolution chain, first success wins:

1. an external image API (``IMAGE_GEN_API_URL``), POSTed with httpx;
2. Google Imagen through the google-genai client, returned as a data URL;
3. a deterministic picsum.photos URL seeded by the placeholder id.

The last step cannot fail, so ``resolve`` always returns a URL.
"""

import base64
import logging

import httpx
from google import genai
from google.genai import types

from config import Settings

logger = logging.getLogger(__name__)

IMAGEN_MODEL = "imagen-3.0-fast-generate-001"

_SIZES = {
    "landscape": (1024, 768),
    "portrait": (768, 1024),
    "square": (512, 512),
}

_IMAGEN_ASPECT = {
    "square": "1:1",
    "landscape": "16:9",
    "portrait": "9:16",
}


def placeholder_url(image_id: str, aspect_ratio: str = "square") -> str:
    width, height = _SIZES.get(aspect_ratio, _SIZES["square"])
    return f"https://picsum.photos/seed/{image_id}/{width}/{height}"


def _url_from_payload(data) -> str | None:
    """Accepts ``{"url"}``, ``{"data": [{"url"}]}`` or ``{"output": [url]}``."""
    if not isinstance(data, dict):
        return None
    if data.get("url"):
        return data["url"]
    items = data.get("data")
    if isinstance(items, list) and items and isinstance(items[0], dict) and items[0].get("url"):
        return items[0]["url"]
    output = data.get("output")
    if isinstance(output, list) and output and isinstance(output[0], str):
        return output[0]
    return None


class ImageResolver:
    """Turns a ``generate_image`` request into a URL."""

    def __init__(
        self,
        api_url: str | None = None,
        genai_client=None,
        imagen_model: str = IMAGEN_MODEL,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_url = api_url
        self.genai_client = genai_client
        self.imagen_model = imagen_model
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "ImageResolver":
        """External API when configured; Imagen when a Google key is present."""
        client = genai.Client(api_key=settings.google_api_key) if settings.google_api_key else None
        return cls(api_url=settings.image_api_url, genai_client=client)

    async def resolve(
        self,
        image_id: str,
        prompt: str,
        aspect_ratio: str = "square",
        background: str = "opaque",
    ) -> str:
        if self.api_url:
            url = await self._from_api(prompt, aspect_ratio, background)
            if url:
                return url
        if self.genai_client is not None:
            url = await self._from_imagen(prompt, aspect_ratio)
            if url:
                return url
        return placeholder_url(image_id, aspect_ratio)

    async def _from_api(self, prompt: str, aspect_ratio: str, background: str) -> str | None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(
                    self.api_url,
                    json={
                        "prompt": prompt,
                        "aspect_ratio": aspect_ratio,
                        "background": background,
                        "n": 1,
                    },
                )
                resp.raise_for_status()
                return _url_from_payload(resp.json())
        except httpx.HTTPError as e:
            logger.warning("Image API request failed: %s", e)
        except ValueError as e:
            logger.warning("Image API returned invalid JSON: %s", e)
        return None

    async def _from_imagen(self, prompt: str, aspect_ratio: str) -> str | None:
        try:
            response = await self.genai_client.aio.models.generate_images(
                model=self.imagen_model,
                prompt=prompt,
                config=types.GenerateImagesConfig(
                    number_of_images=1,
                    aspect_ratio=_IMAGEN_ASPECT.get(aspect_ratio, "1:1"),
                ),
            )
        except Exception as e:
            logger.warning("Imagen generation failed: %s", e)
            return None
        generated = getattr(response, "generated_images", None) or []
        image = generated[0].image if generated else None
        if image is None or not image.image_bytes:
            logger.warning("Imagen returned no image")
            return None
        mime = image.mime_type or "image/png"
        encoded = base64.b64encode(image.image_bytes).decode("ascii")
        return f"data:{mime};base64,{encoded}"
