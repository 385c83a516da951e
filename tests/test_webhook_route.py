try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import copy
import json
from pathlib import Path
from urllib.parse import parse_qs

import httpx
import pytest

from aliwarehouse.clients.deepl import DeepLClient
from aliwarehouse.clients.sqlite_store import TranslationStore
from aliwarehouse.core.config import TranslationSettings
from aliwarehouse.core.locales import PRIORITY_LOCALES
from aliwarehouse.main import app
from aliwarehouse.schemas.translations import ProductTranslationInput
from aliwarehouse.services.shopify_webhooks import (
    ShopifyWebhookService,
    compute_webhook_hmac,
    strip_html,
    verify_webhook,
)

SECRET = "webhook-secret"


class FakeDeepL:
    def __init__(self) -> None:
        self.texts: list[str] = []

    async def translate_to_all_languages(self, text: str) -> dict[str, str]:
        self.texts.append(text)
        return {locale: f"{text} [{locale}]" for locale in PRIORITY_LOCALES}


class FailingService:
    async def handle(self, topic, product):
        raise RuntimeError("DEEPL_API_KEY is not configured")


@pytest.fixture()
def webhook_env(tmp_path: Path):
    from aliwarehouse import dependencies
    from aliwarehouse.core.config import get_settings

    settings = copy.deepcopy(get_settings())
    settings.shopify.webhook_secret = SECRET
    store = TranslationStore(str(tmp_path / "translations.db"))
    deepl = FakeDeepL()
    service = ShopifyWebhookService(store, deepl)

    app.dependency_overrides.update(
        {
            dependencies.get_app_settings: lambda: settings,
            dependencies.get_webhook_service: lambda: service,
        }
    )
    yield store, deepl
    app.dependency_overrides.clear()


def _signed(payload: dict, secret: str = SECRET) -> tuple[bytes, dict[str, str]]:
    body = json.dumps(payload).encode("utf-8")
    return body, {
        "x-shopify-hmac-sha256": compute_webhook_hmac(body, secret),
        "content-type": "application/json",
    }


async def _post(body: bytes, headers: dict[str, str]) -> httpx.Response:
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    ) as client:
        return await client.post("/api/webhooks/shopify", content=body, headers=headers)


PRODUCT = {
    "id": 7001,
    "handle": "garden-light",
    "title": "Garden Light",
    "body_html": "<p>Solar <b>powered</b></p>",
}


@pytest.mark.anyio
async def test_product_update_translates_priority_locales(webhook_env) -> None:
    store, deepl = webhook_env
    body, headers = _signed(PRODUCT)
    headers["x-shopify-topic"] = "products/update"

    response = await _post(body, headers)

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["action"] == "products/update"
    assert data["locales"] == list(PRIORITY_LOCALES)
    assert deepl.texts == ["Garden Light", "Solar powered"]

    german = store.get_translation("garden-light", "de")
    assert german.title == "Garden Light [de]"
    assert german.slug == "garden-light-de"
    assert german.original_title == "Garden Light"
    assert german.translation_source == "deepl"
    assert store.get_shopify_handle_from_slug("garden-light-de", "de") == "garden-light"


@pytest.mark.anyio
async def test_product_create_translates_through_deepl_api(tmp_path: Path) -> None:
    from aliwarehouse import dependencies
    from aliwarehouse.core.config import get_settings

    requests: list[dict[str, list[str]]] = []

    def deepl_handler(request: httpx.Request) -> httpx.Response:
        form = parse_qs(request.content.decode("utf-8"))
        requests.append(form)
        return httpx.Response(
            200,
            json={"translations": [{"text": f"{text} {form['target_lang'][0]}"} for text in form["text"]]},
        )

    settings = copy.deepcopy(get_settings())
    settings.shopify.webhook_secret = SECRET
    store = TranslationStore(str(tmp_path / "translations.db"))
    deepl = DeepLClient(
        TranslationSettings(deepl_api_key="key:fx"), transport=httpx.MockTransport(deepl_handler)
    )
    app.dependency_overrides.update(
        {
            dependencies.get_app_settings: lambda: settings,
            dependencies.get_webhook_service: lambda: ShopifyWebhookService(store, deepl),
        }
    )
    try:
        body, headers = _signed(PRODUCT)
        headers["x-shopify-topic"] = "products/create"
        response = await _post(body, headers)
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    assert len(requests) == 10
    assert all(form["source_lang"] == ["DE"] for form in requests)
    assert store.get_translation("garden-light", "de").title == "Garden Light"
    english = store.get_translation("garden-light", "en")
    assert english.title == "Garden Light EN"
    assert english.description == "Solar powered EN"
    assert english.slug == "garden-light-en"


@pytest.mark.anyio
async def test_product_delete_removes_translations(webhook_env) -> None:
    store, deepl = webhook_env
    store.upsert_translation(
        ProductTranslationInput(
            shopify_product_id="7001",
            shopify_handle="garden-light",
            locale="de",
            title="Gartenleuchte",
            slug="gartenleuchte",
        )
    )
    body, headers = _signed({"id": 7001, "handle": "garden-light"})
    headers["x-shopify-topic"] = "products/delete"

    response = await _post(body, headers)

    assert response.status_code == 200
    assert response.json()["action"] == "deleted"
    assert store.get_product_translations("garden-light") == []
    assert deepl.texts == []


@pytest.mark.anyio
async def test_invalid_signature_is_rejected(webhook_env) -> None:
    body, headers = _signed(PRODUCT, secret="wrong-secret")

    response = await _post(body, headers)

    assert response.status_code == 401


@pytest.mark.anyio
async def test_malformed_payload_is_bad_request(webhook_env) -> None:
    body, headers = _signed({"title": "no id"})

    response = await _post(body, headers)

    assert response.status_code == 400


@pytest.mark.anyio
async def test_translation_failure_returns_500(webhook_env) -> None:
    from aliwarehouse import dependencies

    app.dependency_overrides[dependencies.get_webhook_service] = lambda: FailingService()
    body, headers = _signed(PRODUCT)

    response = await _post(body, headers)

    assert response.status_code == 500
    assert response.json() == {
        "error": "Translation failed",
        "details": "DEEPL_API_KEY is not configured",
    }


@pytest.mark.anyio
async def test_health_lists_supported_topics() -> None:
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    ) as client:
        response = await client.get("/api/webhooks/shopify")

    assert response.status_code == 200
    assert response.json()["webhook"] == "shopify-products"


def test_verify_webhook_without_secret_accepts() -> None:
    assert verify_webhook(b"{}", None, None)
    assert not verify_webhook(b"{}", None, SECRET)


def test_strip_html() -> None:
    assert strip_html("<p>Hello <i>world</i></p>") == "Hello world"
