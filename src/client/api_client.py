"""
Async HTTP client for the recipe REST API.
Every call goes through ``_request`` so transport failures and error
statuses surface as ServiceError subclasses, never raw httpx exceptions.
"""
from __future__ import annotations

import logging
import os
from typing import Any, Optional

import httpx
from dotenv import find_dotenv, load_dotenv

from src.app.domain.models import Recipe, parse_recipe
from src.client.errors import ApiError, NetworkFailureError, NetworkTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:3000"
DEFAULT_TIMEOUT_SECONDS = 10.0


def get_api_url() -> str:
    # .env é opcional no cliente; variáveis já exportadas têm prioridade
    env_path = find_dotenv(usecwd=True)
    if env_path:
        load_dotenv(dotenv_path=env_path, override=False)
    return os.getenv("RECIPES_API_URL", DEFAULT_BASE_URL).rstrip("/")


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and "detail" in body:
        return str(body["detail"])
    return str(body)


class RecipeApiClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or get_api_url()).rstrip("/")
        self.timeout = timeout
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "RecipeApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as error:
            raise NetworkTimeoutError(url, self.timeout) from error
        except httpx.TransportError as error:
            raise NetworkFailureError(url, str(error) or type(error).__name__) from error

        if response.is_error:
            detail = _detail(response)
            logger.warning("%s %s -> %d: %s", method, path, response.status_code, detail)
            raise ApiError(response.status_code, detail)
        return response

    async def list_recipes(
        self,
        platform: Optional[str] = None,
        category: Optional[str] = None,
    ) -> list[Recipe]:
        params = {k: v for k, v in (("platform", platform), ("category", category)) if v}
        response = await self._request("GET", "/api/recipes", params=params)
        return [parse_recipe(item) for item in response.json()]

    async def create_recipe(self, fields: dict[str, Any]) -> Recipe:
        response = await self._request("POST", "/api/recipes", json=fields)
        return parse_recipe(response.json())

    async def update_recipe(self, recipe_id: int, fields: dict[str, Any]) -> Recipe:
        response = await self._request("PUT", f"/api/recipes/{recipe_id}", json=fields)
        return parse_recipe(response.json())

    async def delete_recipe(self, recipe_id: int) -> None:
        await self._request("DELETE", f"/api/recipes/{recipe_id}")

    async def import_recipes(self, items: list[dict[str, Any]]) -> list[Recipe]:
        response = await self._request("POST", "/api/recipes/import", json=items)
        return [parse_recipe(item) for item in response.json()]

    async def export_recipes(self) -> list[dict[str, Any]]:
        response = await self._request("GET", "/api/recipes/export")
        return response.json()
