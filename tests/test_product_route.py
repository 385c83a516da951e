try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from pathlib import Path

import httpx
import pytest

from aliwarehouse.clients.shopify import ShopifyError
from aliwarehouse.clients.sqlite_store import TranslationStore
from aliwarehouse.main import app
from aliwarehouse.schemas.translations import ProductTranslationInput


class CatalogStub:
    def __init__(self, handles=(), fail: bool = False) -> None:
        self._handles = set(handles)
        self._fail = fail

    async def get_product_by_handle(self, handle: str):
        if self._fail:
            raise ShopifyError("Shopify API error: 503")
        return {"handle": handle} if handle in self._handles else None


@pytest.fixture()
def route_env(tmp_path: Path):
    from aliwarehouse import dependencies

    store = TranslationStore(str(tmp_path / "translations.db"))
    store.upsert_translation(
        ProductTranslationInput(
            shopify_product_id="1",
            shopify_handle="desk-lamp",
            locale="de",
            title="Tischlampe",
            slug="tischlampe-1",
        )
    )
    catalog = {"client": None}
    app.dependency_overrides.update(
        {
            dependencies.get_translation_store: lambda: store,
            dependencies.get_shopify_client: lambda: catalog["client"],
        }
    )
    yield catalog
    app.dependency_overrides.clear()


async def _get(path: str) -> httpx.Response:
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    ) as client:
        return await client.get(path)


@pytest.mark.anyio
async def test_known_slug_resolves(route_env) -> None:
    response = await _get("/api/products/de/tischlampe-1/route")

    assert response.status_code == 200
    assert response.json() == {
        "kind": "found",
        "locale": "de",
        "shopify_handle": "desk-lamp",
        "slug": "tischlampe-1",
        "path": "/de/produkte/tischlampe-1",
    }


@pytest.mark.anyio
async def test_unknown_slug_is_404(route_env) -> None:
    response = await _get("/api/products/de/missing/route")
    assert response.status_code == 404


@pytest.mark.anyio
async def test_unsupported_locale_is_404(route_env) -> None:
    response = await _get("/api/products/xx/tischlampe-1/route")
    assert response.status_code == 404


@pytest.mark.anyio
async def test_untranslated_handle_found_in_catalog(route_env) -> None:
    route_env["client"] = CatalogStub(handles={"sofa"})

    response = await _get("/api/products/fr/sofa/route")

    assert response.status_code == 200
    assert response.json()["path"] == "/fr/produits/sofa"


@pytest.mark.anyio
async def test_catalog_failure_is_bad_gateway(route_env) -> None:
    route_env["client"] = CatalogStub(fail=True)

    response = await _get("/api/products/fr/sofa/route")

    assert response.status_code == 502
