"""DeepL Pro translation client."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Sequence

import httpx

from aliwarehouse.core.config import TranslationSettings
from aliwarehouse.core.locales import DEEPL_TO_LOCALE, LOCALE_TO_DEEPL
from aliwarehouse.utils.http import RetryConfig, request_with_retry

logger = logging.getLogger(__name__)

TARGET_LANGUAGES: tuple[str, ...] = tuple(LOCALE_TO_DEEPL.values())


class DeepLError(RuntimeError):
    """Raised when DeepL is misconfigured or returns an error."""


class DeepLClient:
    """Translate text with DeepL's `/translate` endpoint."""

    def __init__(
        self,
        settings: TranslationSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not settings.deepl_api_key:
            raise DeepLError("DEEPL_API_KEY is not configured")
        self._api_key = settings.deepl_api_key
        self._base_url = settings.deepl_api_url.rstrip("/")
        self._transport = transport

    @property
    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"DeepL-Auth-Key {self._api_key}"}

    async def _translate(
        self, texts: Sequence[str], target_lang: str, source_lang: Optional[str]
    ) -> List[str]:
        # List values are sent as repeated ``text`` fields.
        form: Dict[str, object] = {"text": list(texts), "target_lang": target_lang}
        if source_lang:
            form["source_lang"] = source_lang

        async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
            try:
                response = await client.post(
                    f"{self._base_url}/translate",
                    data=form,
                    headers=self._headers,
                )
            except httpx.HTTPError as exc:
                raise DeepLError(f"DeepL request failed: {exc}") from exc

        if response.status_code != 200:
            raise DeepLError(f"DeepL API error: {response.status_code} - {response.text}")
        translations = response.json().get("translations") or []
        if len(translations) != len(texts):
            raise DeepLError("DeepL returned an unexpected number of translations.")
        return [item.get("text", "") for item in translations]

    async def translate_text(
        self, text: str, target_lang: str, source_lang: Optional[str] = None
    ) -> str:
        (translated,) = await self._translate([text], target_lang, source_lang)
        return translated

    async def translate_batch(
        self, texts: Sequence[str], target_lang: str, source_lang: Optional[str] = None
    ) -> List[str]:
        if not texts:
            return []
        return await self._translate(texts, target_lang, source_lang)

    async def translate_to_all_languages(
        self, text: str, source_lang: str = "DE"
    ) -> Dict[str, str]:
        """Translate ``text`` into every priority locale concurrently.

        The source language is passed through untranslated. Returns a mapping
        keyed by storefront locale.
        """

        async def _one(lang: str) -> tuple[str, str]:
            if lang == source_lang:
                return lang, text
            return lang, await self.translate_text(text, lang, source_lang)

        pairs = await asyncio.gather(*(_one(lang) for lang in TARGET_LANGUAGES))
        return {DEEPL_TO_LOCALE[lang]: translated for lang, translated in pairs}

    async def get_usage(self) -> Dict[str, int]:
        async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
            try:
                response = await request_with_retry(
                    client.get,
                    f"{self._base_url}/usage",
                    headers=self._headers,
                    retry_config=RetryConfig(attempts=2, backoff_seconds=0.5),
                )
            except httpx.HTTPError as exc:
                raise DeepLError(f"DeepL usage request failed: {exc}") from exc
        payload = response.json()
        return {
            "character_count": int(payload.get("character_count", 0)),
            "character_limit": int(payload.get("character_limit", 0)),
        }


__all__ = ["DeepLClient", "DeepLError", "TARGET_LANGUAGES"]
