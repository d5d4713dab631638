from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from medialink.api.deps import get_resolver
from medialink.models.schemas import (
    CatalogDetailRequest,
    CatalogDetailResponse,
    CatalogSearchRequest,
    CatalogSearchResponse,
)
from medialink.services.lookup import catalog_detail, search_catalog
from medialink.services.resolver import Resolver

router = APIRouter()


def _missing(parameter: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"status": False, "error": f"Missing {parameter} parameter"})


async def _search(query: str | None, page: int, resolver: Resolver):
    if query is None:
        return _missing("query")
    result = await search_catalog(resolver, query, page)
    return CatalogSearchResponse.from_result(result)


async def _detail(url: str | None, resolver: Resolver):
    if not url:
        return _missing("url")
    result = await catalog_detail(resolver, url)
    return CatalogDetailResponse.from_result(result)


@router.get("/search", response_model=CatalogSearchResponse)
async def search_get(
    query: str | None = None,
    page: int = 1,
    resolver: Resolver = Depends(get_resolver),
):
    """Search the film catalog. Zero matches is a successful, empty page."""
    return await _search(query, page, resolver)


@router.post("/search", response_model=CatalogSearchResponse)
async def search_post(body: CatalogSearchRequest, resolver: Resolver = Depends(get_resolver)):
    return await _search(body.query, body.page, resolver)


@router.get("/detail", response_model=CatalogDetailResponse)
async def detail_get(url: str | None = None, resolver: Resolver = Depends(get_resolver)):
    """Scrape one catalog page into normalized metadata and download links."""
    return await _detail(url, resolver)


@router.post("/detail", response_model=CatalogDetailResponse)
async def detail_post(body: CatalogDetailRequest, resolver: Resolver = Depends(get_resolver)):
    return await _detail(body.url, resolver)
