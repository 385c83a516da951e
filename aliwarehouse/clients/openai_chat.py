"""OpenAI chat completions client for translation and product copy."""

from __future__ import annotations

import json
import logging
from textwrap import dedent
from typing import Any, Dict, List, Optional, Union

import httpx

from aliwarehouse.core.config import TranslationSettings
from aliwarehouse.core.locales import LANGUAGE_NAMES

logger = logging.getLogger(__name__)

CHAT_COMPLETIONS_URL = "https://api.openai.com/v1/chat/completions"

Message = Dict[str, Union[str, List[Dict[str, Any]]]]


class OpenAIError(RuntimeError):
    """Raised when OpenAI is misconfigured or returns an unusable response."""


def strip_json_fences(content: str) -> str:
    """Remove a surrounding markdown code fence from a model reply."""
    text = content.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


class OpenAIChatClient:
    """Thin wrapper around the chat completions endpoint."""

    def __init__(
        self,
        settings: TranslationSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not settings.openai_api_key:
            raise OpenAIError("OPENAI_API_KEY is not configured")
        self._api_key = settings.openai_api_key
        self._model = settings.openai_model
        self._transport = transport

    async def complete(
        self,
        messages: List[Message],
        *,
        max_tokens: int = 150,
        temperature: float = 0.7,
        model: Optional[str] = None,
    ) -> str:
        body = {
            "model": model or self._model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        async with httpx.AsyncClient(timeout=60.0, transport=self._transport) as client:
            try:
                response = await client.post(
                    CHAT_COMPLETIONS_URL,
                    json=body,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                )
            except httpx.HTTPError as exc:
                raise OpenAIError(f"OpenAI request failed: {exc}") from exc

        if response.status_code != 200:
            raise OpenAIError(f"OpenAI API error: {response.status_code} - {response.text}")
        try:
            return response.json()["choices"][0]["message"]["content"].strip()
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise OpenAIError("OpenAI returned an unexpected payload.") from exc

    async def translate(self, text: str, target_locale: str) -> str:
        """Translate ``text`` into the locale's language, auto-detecting the source."""
        if not text or not text.strip():
            return ""
        language = LANGUAGE_NAMES.get(target_locale, target_locale)
        system = dedent(
            f"""
            You are a professional translator for e-commerce product content.

            TASK: Translate the following text to {language}.

            IMPORTANT RULES:
            1. AUTO-DETECT the source language (it could be English, German, Spanish, Portuguese, Chinese, or any other language)
            2. Translate accurately to {language}, preserving the meaning
            3. Keep product names, brand names, and technical terms appropriate for the target market
            4. Return ONLY the translated text, no explanations or notes
            5. If the text is already in {language}, still return it (possibly improved for clarity)
            """
        ).strip()
        return await self.complete(
            [{"role": "system", "content": system}, {"role": "user", "content": text}],
            max_tokens=500,
            temperature=0.3,
        )

    async def generate_headline(self, title: str, description: str, locale: str) -> str:
        language = LANGUAGE_NAMES.get(locale, "English")
        return await self.complete(
            [
                {
                    "role": "system",
                    "content": (
                        "You are a marketing copywriter for an e-commerce store. Generate short, "
                        "catchy product headlines (taglines) that are SEO-friendly and appealing "
                        "to customers. The headline should be 5-10 words. Respond ONLY with the "
                        "headline, no quotes or explanation."
                    ),
                },
                {
                    "role": "user",
                    "content": (
                        f"Generate a marketing headline in {language} for this product:\n\n"
                        f"Title: {title}\nDescription: {description}\n\n"
                        "The headline should highlight key benefits and be compelling for shoppers."
                    ),
                },
            ],
            max_tokens=50,
        )

    async def generate_slug(self, title: str, locale: str) -> str:
        slug = await self.complete(
            [
                {
                    "role": "system",
                    "content": dedent(
                        """
                        You convert product titles into SEO-friendly URL slugs. Rules:
                        1. Use only lowercase letters, numbers, and hyphens
                        2. Remove special characters and accents
                        3. Keep it concise (3-5 words max)
                        4. Make it descriptive and readable
                        5. Respond ONLY with the slug, nothing else
                        """
                    ).strip(),
                },
                {
                    "role": "user",
                    "content": f'Convert this {locale.upper()} product title to a URL slug: "{title}"',
                },
            ],
            max_tokens=30,
        )
        return slug.replace('"', "").replace("'", "").strip().lower()

    async def analyze_product_image(
        self, image_url: str, existing_description: str, locale: str
    ) -> str:
        language = LANGUAGE_NAMES.get(locale, "English")
        return await self.complete(
            [
                {
                    "role": "system",
                    "content": (
                        "You are an e-commerce product description writer. Analyze the product "
                        "image and enhance the existing description with visual details you "
                        "observe. Keep the enhanced description concise (2-3 sentences) and focus "
                        "on features visible in the image that aren't mentioned in the original "
                        "description."
                    ),
                },
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "text",
                            "text": (
                                f"Analyze this product image and enhance the description in "
                                f"{language}.\n\nExisting description: {existing_description}\n\n"
                                "Add visual details you can see that would help customers "
                                "understand the product better. Keep it brief and natural."
                            ),
                        },
                        {"type": "image_url", "image_url": {"url": image_url}},
                    ],
                },
            ],
            max_tokens=200,
        )

    async def complete_json(
        self, system: str, prompt: str, *, max_tokens: int = 1000, temperature: float = 0.3
    ) -> Dict[str, Any]:
        """Request a JSON object and parse it, tolerating markdown fences."""
        content = await self.complete(
            [{"role": "system", "content": system}, {"role": "user", "content": prompt}],
            max_tokens=max_tokens,
            temperature=temperature,
        )
        try:
            parsed = json.loads(strip_json_fences(content))
        except json.JSONDecodeError as exc:
            raise OpenAIError(f"OpenAI returned invalid JSON: {exc}") from exc
        if not isinstance(parsed, dict):
            raise OpenAIError("OpenAI returned JSON that is not an object.")
        return parsed


__all__ = ["CHAT_COMPLETIONS_URL", "OpenAIChatClient", "OpenAIError", "strip_json_fences"]
