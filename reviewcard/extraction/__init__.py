"""Review metadata extraction: page fetch, strategy cascade, image embedding."""

from .images import ImageEmbedder, to_data_uri
from .review_extractor import ReviewExtractor
from .strategies import (
    ExtractionContext,
    Strategy,
    parse_html,
    run_cascade,
    scale_rating,
    slug_to_title,
    upgrade_poster_url,
)

__all__ = [
    "ExtractionContext",
    "ImageEmbedder",
    "ReviewExtractor",
    "Strategy",
    "parse_html",
    "run_cascade",
    "scale_rating",
    "slug_to_title",
    "to_data_uri",
    "upgrade_poster_url",
]
