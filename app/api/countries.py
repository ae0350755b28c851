"""Read-only country data, proxied from the REST Countries API."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException

from app.api.auth import get_app_settings
from app.core.config import Settings
from app.services import countries
from app.services.countries import CountriesServiceError, CountryNotFoundError

router = APIRouter()


def _upstream_error(e: CountriesServiceError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


@router.get("")
async def list_countries(
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> list[dict[str, Any]]:
    try:
        return await countries.get_all_countries(settings)
    except CountriesServiceError as e:
        raise _upstream_error(e) from e


@router.get("/name/{name}")
async def search_countries_by_name(
    name: str,
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> list[dict[str, Any]]:
    """Countries matching `name`; an empty list when nothing matches."""
    try:
        return await countries.get_countries_by_name(name, settings)
    except CountriesServiceError as e:
        raise _upstream_error(e) from e


@router.get("/region/{region}")
async def list_countries_by_region(
    region: str,
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> list[dict[str, Any]]:
    try:
        return await countries.get_countries_by_region(region, settings)
    except CountriesServiceError as e:
        raise _upstream_error(e) from e


@router.get("/alpha/{code}")
async def get_country(
    code: str,
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> dict[str, Any]:
    """One country by alpha-2 or alpha-3 code."""
    try:
        return await countries.get_country_by_code(code, settings)
    except CountryNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message) from e
    except CountriesServiceError as e:
        raise _upstream_error(e) from e


@router.get("/language/{language}")
async def list_countries_by_language(
    language: str,
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> list[dict[str, Any]]:
    try:
        return await countries.get_countries_by_language(language, settings)
    except CountriesServiceError as e:
        raise _upstream_error(e) from e
