"""Merge embedding matches with catalog records.

Pure in-memory step of image search: keeps the service's relevance order,
drops repeated slugs (first occurrence wins) and drops slugs that are no
longer in the catalog.
"""

from typing import Dict, Iterable, List, Sequence

from catalog.schemas import CatalogItem
from domain.embedding.ports import EmbeddingMatch
from search.schemas import EnrichedResult


def build_catalog_lookup(items: Iterable[CatalogItem]) -> Dict[str, CatalogItem]:
    """slug → CatalogItem; on duplicate slugs the first record is kept"""
    lookup: Dict[str, CatalogItem] = {}
    for item in items:
        lookup.setdefault(item.slug, item)
    return lookup


def enrich(match: EmbeddingMatch, item: CatalogItem) -> EnrichedResult:
    return EnrichedResult(
        slug=match.slug,
        name=match.name or item.name,
        image=match.image,
        text=match.text,
        description=item.description,
        short_description=item.short_description,
        category=item.category_slug,
        brand=item.brand_name,
        media=item.media,
        sizes=item.sizes,
    )


def merge_matches(
    matches: Sequence[EmbeddingMatch],
    lookup: Dict[str, CatalogItem],
) -> List[EnrichedResult]:
    """Join matches with the catalog, at most one result per slug.

    Example:
        matches a, b, a with only "a" in the catalog → one result for "a"
    """
    results: List[EnrichedResult] = []
    seen = set()

    for match in matches:
        slug = match.slug
        if not slug or slug in seen:
            continue
        item = lookup.get(slug)
        if item is None:
            # Stale index entry for a removed product
            continue
        results.append(enrich(match, item))
        seen.add(slug)

    return results
