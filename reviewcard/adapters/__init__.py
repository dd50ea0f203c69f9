"""Adapters for external data sources."""

from .tmdb import (
    MovieMatch,
    NullPosterLookup,
    PosterLookup,
    TMDBPosterLookup,
    poster_lookup_from_settings,
)

__all__ = [
    "MovieMatch",
    "NullPosterLookup",
    "PosterLookup",
    "TMDBPosterLookup",
    "poster_lookup_from_settings",
]
