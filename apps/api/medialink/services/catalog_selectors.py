"""Selector sets for film-catalog pages.

Ordered from the most specific template to the most generic one; catalog
themes drift, so every field lists several fallbacks.
"""

from medialink.services.html_miner import DetailSelectorSet, FieldSelector, SelectorSet

_LISTING_BLOCKS = (
    "article.post",
    "article.item",
    "div.result-item",
    "div.ml-item",
    "div.movie-item",
    "div.post-item",
    "li.post",
    "article",
)

_LISTING_FIELDS = {
    "title": (
        FieldSelector("h2.entry-title a"),
        FieldSelector("h2.title a"),
        FieldSelector("h3.title a"),
        FieldSelector(".title a"),
        FieldSelector("h2 a"),
        FieldSelector("h3 a"),
        FieldSelector("a", "title"),
        FieldSelector("img", "alt"),
    ),
    "link": (
        FieldSelector("h2.entry-title a", "href"),
        FieldSelector(".title a", "href"),
        FieldSelector("h2 a", "href"),
        FieldSelector("h3 a", "href"),
        FieldSelector("a", "href"),
    ),
    "image": (
        FieldSelector("img", "data-src"),
        FieldSelector("img", "data-lazy-src"),
        FieldSelector("img", "src"),
    ),
    "excerpt": (
        FieldSelector(".entry-summary"),
        FieldSelector(".excerpt"),
        FieldSelector(".contenido p"),
        FieldSelector("p"),
    ),
}

DETAIL_FIELD_LABELS = (
    "Year:",
    "Genre:",
    "Director:",
    "Cast:",
    "Language:",
    "Quality:",
    "Size:",
    "Runtime:",
    "Rating:",
)

DETAIL_SELECTORS = DetailSelectorSet(
    title=(
        FieldSelector("h1.entry-title"),
        FieldSelector("h1.title"),
        FieldSelector("h1"),
        FieldSelector('meta[property="og:title"]', "content"),
        FieldSelector("title"),
    ),
    canonical_url=(
        FieldSelector('link[rel="canonical"]', "href"),
        FieldSelector('meta[property="og:url"]', "content"),
    ),
    thumbnail=(
        FieldSelector('meta[property="og:image"]', "content"),
        FieldSelector(".entry-content img", "data-src"),
        FieldSelector(".entry-content img", "src"),
        FieldSelector(".poster img", "src"),
    ),
    content_root=(".entry-content", ".post-content", "article .content", "#content", "article"),
    synopsis_fallback=(
        FieldSelector('meta[property="og:description"]', "content"),
        FieldSelector('meta[name="description"]', "content"),
    ),
    field_labels=DETAIL_FIELD_LABELS,
)


def listing_selectors(content_path_pattern: str | None) -> SelectorSet:
    return SelectorSet(
        block_selectors=_LISTING_BLOCKS,
        fields=_LISTING_FIELDS,
        content_path_pattern=content_path_pattern,
    )
