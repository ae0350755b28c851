"""Country directory: read-only queries against the public REST Countries API (v3.1)."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


class CountriesServiceError(Exception):
    """Raised when the country API cannot answer (unreachable, timeout, bad status or body)."""

    def __init__(self, message: str, status_code: int = 502, cause: Exception | None = None) -> None:
        self.message = message
        self.status_code = status_code
        self.cause = cause
        super().__init__(message)


class CountryNotFoundError(Exception):
    """Raised when a lookup by code matches no country."""

    def __init__(self, message: str = "Country not found") -> None:
        self.message = message
        super().__init__(message)


async def _get(
    path: str,
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[dict[str, Any]] | None:
    """
    GET base_url + path and return the decoded JSON list.

    Returns None when the upstream answers 404 (REST Countries' "no match").
    Raises CountriesServiceError for every other failure.
    """
    url = f"{settings.COUNTRIES_API_BASE_URL.rstrip('/')}{path}"
    timeout = httpx.Timeout(settings.COUNTRIES_REQUEST_TIMEOUT_SEC)
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.get(url)
    except httpx.ConnectError as e:
        logger.warning("Country API unreachable", extra={"path": path})
        raise CountriesServiceError("Country API is unreachable.", 503, cause=e) from e
    except httpx.TimeoutException as e:
        logger.warning("Country API timed out", extra={"path": path})
        raise CountriesServiceError("Country API request timed out.", 504, cause=e) from e
    except httpx.HTTPError as e:
        logger.warning("Country API request failed", extra={"path": path})
        raise CountriesServiceError("Country API request failed.", 502, cause=e) from e

    if response.status_code == 404:
        return None
    if response.status_code != 200:
        logger.warning(
            "Country API returned an error status",
            extra={"path": path, "upstream_status": response.status_code},
        )
        raise CountriesServiceError(f"Country API returned status {response.status_code}.")
    try:
        body = response.json()
    except json.JSONDecodeError as e:
        raise CountriesServiceError("Country API response body is not valid JSON.", cause=e) from e
    if isinstance(body, dict):
        body = [body]
    if not isinstance(body, list):
        raise CountriesServiceError("Country API response has an unexpected shape.")
    return body


async def get_all_countries(
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[dict[str, Any]]:
    return await _get("/all", settings, transport) or []


async def get_countries_by_name(
    name: str,
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[dict[str, Any]]:
    """Countries whose name matches; no match is an empty list, not an error."""
    return await _get(f"/name/{quote(name, safe='')}", settings, transport) or []


async def get_countries_by_region(
    region: str,
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[dict[str, Any]]:
    return await _get(f"/region/{quote(region, safe='')}", settings, transport) or []


async def get_country_by_code(
    code: str,
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, Any]:
    """Single country by alpha-2/alpha-3 code. Raises CountryNotFoundError if none."""
    countries = await _get(f"/alpha/{quote(code, safe='')}", settings, transport)
    if not countries:
        raise CountryNotFoundError()
    return countries[0]


def _speaks(country: dict[str, Any], language: str) -> bool:
    languages = country.get("languages")
    if not isinstance(languages, dict):
        return False
    needle = language.lower()
    return any(isinstance(lang, str) and needle in lang.lower() for lang in languages.values())


async def get_countries_by_language(
    language: str,
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[dict[str, Any]]:
    """All countries with a language whose name contains `language` (case-insensitive)."""
    countries = await get_all_countries(settings, transport)
    return [c for c in countries if _speaks(c, language)]
