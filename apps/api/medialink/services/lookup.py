"""Entry points used by the HTTP layer: classify, then resolve.

InvalidReference propagates before the Resolver is ever invoked;
ResolutionExhausted propagates when every strategy failed.
"""

from medialink.models.references import ReferenceKind
from medialink.models.results import AudioResult, CatalogResult, CatalogSearchResult
from medialink.services.classifier import classify
from medialink.services.resolver import Resolver


async def resolve_audio(resolver: Resolver, youtube_url: str) -> AudioResult:
    ref = classify(youtube_url, ReferenceKind.VIDEO)
    outcome = await resolver.resolve(ref)
    return outcome.unwrap()


async def search_catalog(resolver: Resolver, query: str, page: int = 1) -> CatalogSearchResult:
    ref = classify(query, ReferenceKind.SEARCH, page=page)
    outcome = await resolver.resolve(ref)
    return outcome.unwrap()


async def catalog_detail(resolver: Resolver, url: str) -> CatalogResult:
    ref = classify(url, ReferenceKind.PAGE)
    outcome = await resolver.resolve(ref)
    return outcome.unwrap()
