"""Pydantic request/response schemas for all API routes.

Field names follow the public JSON contract (camelCase where callers expect
it). Route files import from here and never define BaseModel subclasses.
"""

from pydantic import BaseModel, Field

from medialink.models.results import AudioResult, CatalogItem, CatalogResult, CatalogSearchResult

# ---------------------------------------------------------------------------
# Audio
# ---------------------------------------------------------------------------


class Mp3Request(BaseModel):
    youtubeUrl: str | None = None


class Mp3Response(BaseModel):
    status: bool = True
    title: str
    thumb: str | None = None
    duration: int | None = None
    mp3: str
    source: str
    videoId: str

    @classmethod
    def from_result(cls, result: AudioResult) -> "Mp3Response":
        return cls(
            title=result.title,
            thumb=result.thumbnail_url,
            duration=result.duration_seconds,
            mp3=result.source_media_url,
            source=result.source_strategy,
            videoId=result.video_id,
        )


class VideoInfoResponse(BaseModel):
    title: str
    duration: int | None = None
    thumbnail: str | None = None
    author: str | None = None
    videoId: str
    source: str

    @classmethod
    def from_result(cls, result: AudioResult) -> "VideoInfoResponse":
        return cls(
            title=result.title,
            duration=result.duration_seconds,
            thumbnail=result.thumbnail_url,
            author=result.author,
            videoId=result.video_id,
            source=result.source_strategy,
        )


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class CatalogSearchRequest(BaseModel):
    query: str | None = None
    page: int = Field(default=1, ge=1, le=500)


class CatalogDetailRequest(BaseModel):
    url: str | None = None


class CatalogMovie(BaseModel):
    title: str
    url: str
    thumbnail: str | None = None
    excerpt: str | None = None
    confidence: str

    @classmethod
    def from_item(cls, item: CatalogItem) -> "CatalogMovie":
        return cls(
            title=item.title,
            url=item.url,
            thumbnail=item.thumbnail_url,
            excerpt=item.excerpt,
            confidence=item.confidence.value,
        )


class CatalogSearchResponse(BaseModel):
    query: str
    page: int
    totalResults: int
    movies: list[CatalogMovie] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: CatalogSearchResult) -> "CatalogSearchResponse":
        return cls(
            query=result.query,
            page=result.page,
            totalResults=result.total_results,
            movies=[CatalogMovie.from_item(item) for item in result.items],
        )


class DownloadLinkSchema(BaseModel):
    provider: str
    url: str
    linkType: str


class CatalogDetailResponse(BaseModel):
    title: str
    canonicalUrl: str
    thumbnailUrl: str | None = None
    synopsisExcerpt: str | None = None
    year: int | None = None
    structuredFields: dict[str, str] = Field(default_factory=dict)
    downloadLinks: list[DownloadLinkSchema] = Field(default_factory=list)
    confidence: str
    source: str

    @classmethod
    def from_result(cls, result: CatalogResult) -> "CatalogDetailResponse":
        return cls(
            title=result.title,
            canonicalUrl=result.canonical_url,
            thumbnailUrl=result.thumbnail_url,
            synopsisExcerpt=result.synopsis_excerpt,
            year=result.year,
            structuredFields=result.structured_fields,
            downloadLinks=[
                DownloadLinkSchema(provider=link.provider, url=link.url, linkType=link.link_type.value)
                for link in result.download_links
            ],
            confidence=result.confidence.value,
            source=result.source_strategy,
        )
