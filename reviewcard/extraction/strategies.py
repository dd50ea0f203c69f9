"""Named extraction strategies for review page markup.

Each field of ReviewMetadata is derived from an ordered list of strategies.
A strategy is a pure function of the parsed page returning a value or None;
the first strategy that returns something wins. Boolean flags are expressed
the same way: indicator strategies return True or None, and the flag is set
when any of them fires.
"""

import re
from dataclasses import dataclass
from functools import cached_property
from typing import Callable, Generic, Optional, Sequence, TypeVar

from bs4 import BeautifulSoup

from ..models import ReviewMetadata
from ..url_normalizer import path_segments
from ..utils import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

UNKNOWN_FILM = "Unknown Film"
UNKNOWN_USER = "unknown"

POSTER_CDN_HOST = "ltrbxd.com"
POSTER_SIZE_SEGMENT = "-0-460-0-690-crop"
SPOILER_PHRASE = "this review may contain spoilers"

# Rating indicator classes run rated-0 .. rated-10 (half-star steps)
MAX_RAW_RATING = 10

_QUOTED_RE = re.compile(r"['\"](.+?)['\"]")
_REVIEW_OF_RE = re.compile(r"Review of (.+?) by ", re.IGNORECASE)
_TRAILING_YEAR_RE = re.compile(r"\s*\(\d{4}\)\s*$")
_YEAR_RE = re.compile(r"\((\d{4})\)")
_RATED_RE = re.compile(r"rated-(\d+)")
_CDN_SIZE_RE = re.compile(r"-0-\d+-0-\d+-crop")

REVIEW_PARAGRAPH_SELECTOR = ".review .body-text p, .review-body p, .body-text > div > p"


class ExtractionContext:
    """Parsed page plus values derived once and shared by strategies."""

    def __init__(self, html: str, url: str):
        self.url = url
        self.soup = BeautifulSoup(html, "lxml")

    @cached_property
    def url_parts(self) -> list[str]:
        return path_segments(self.url)

    @cached_property
    def username(self) -> Optional[str]:
        return self.url_parts[0] if self.url_parts else None

    @cached_property
    def film_slug(self) -> Optional[str]:
        # /<username>/film/<slug>/...
        return self.url_parts[2] if len(self.url_parts) > 2 else None

    @cached_property
    def og_title(self) -> str:
        return self.attr('meta[property="og:title"]', "content") or ""

    @cached_property
    def page_title(self) -> str:
        return self.text("title") or ""

    def attr(self, selector: str, name: str) -> Optional[str]:
        """Attribute of the first element matching selector, None when missing or blank."""
        element = self.soup.select_one(selector)
        if element is None:
            return None
        value = element.get(name)
        if isinstance(value, list):
            value = " ".join(value)
        value = (value or "").strip()
        return value or None

    def text(self, selector: str) -> Optional[str]:
        """Trimmed text of the first element matching selector."""
        element = self.soup.select_one(selector)
        if element is None:
            return None
        return element.get_text().strip() or None

    def all_text(self, selector: str) -> Optional[str]:
        """Trimmed concatenated text of every element matching selector."""
        text = "".join(el.get_text() for el in self.soup.select(selector)).strip()
        return text or None

    def exists(self, selector: str) -> bool:
        return self.soup.select_one(selector) is not None


@dataclass(frozen=True)
class Strategy(Generic[T]):
    """A single named way of finding a field value."""

    name: str
    func: Callable[[ExtractionContext], Optional[T]]

    def __call__(self, ctx: ExtractionContext) -> Optional[T]:
        return self.func(ctx)


def run_cascade(
    field: str,
    strategies: Sequence[Strategy[T]],
    ctx: ExtractionContext,
) -> Optional[T]:
    """Run strategies in order and return the first non-None result."""
    for strategy in strategies:
        value = strategy(ctx)
        if value is not None:
            logger.debug(f"{field}: matched by {strategy.name}")
            return value
    logger.debug(f"{field}: no strategy matched")
    return None


# ----------------------------------------------------------------------
# Title
# ----------------------------------------------------------------------


def slug_to_title(slug: Optional[str]) -> str:
    """Convert a URL slug ("marty-supreme") into a title ("Marty Supreme")."""
    if not slug:
        return UNKNOWN_FILM
    words = [w for w in slug.split("-") if w]
    if not words:
        return UNKNOWN_FILM
    return " ".join(w[0].upper() + w[1:].lower() for w in words)


def _title_from_og(ctx: ExtractionContext) -> Optional[str]:
    if not ctx.og_title:
        return None
    quoted = _QUOTED_RE.search(ctx.og_title)
    if quoted:
        return quoted.group(1)
    review_of = _REVIEW_OF_RE.search(ctx.og_title)
    if review_of:
        return _TRAILING_YEAR_RE.sub("", review_of.group(1)).strip() or None
    return None


def _title_from_page_title(ctx: ExtractionContext) -> Optional[str]:
    quoted = _QUOTED_RE.search(ctx.page_title)
    return quoted.group(1) if quoted else None


def _title_from_slug(ctx: ExtractionContext) -> Optional[str]:
    return slug_to_title(ctx.film_slug) if ctx.film_slug else None


TITLE_STRATEGIES: list[Strategy[str]] = [
    Strategy("poster-data-film-name", lambda ctx: ctx.attr(".film-poster", "data-film-name")),
    Strategy("headline-link", lambda ctx: ctx.all_text("h1.headline-1 a")),
    Strategy("og-title", _title_from_og),
    Strategy("page-title", _title_from_page_title),
    Strategy("url-slug", _title_from_slug),
]


# ----------------------------------------------------------------------
# Year
# ----------------------------------------------------------------------


def _parse_year(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    match = re.match(r"\s*(\d{4})", value)
    return int(match.group(1)) if match else None


def _year_in(text: str) -> Optional[int]:
    match = _YEAR_RE.search(text)
    return int(match.group(1)) if match else None


YEAR_STRATEGIES: list[Strategy[int]] = [
    Strategy(
        "poster-data-release-year",
        lambda ctx: _parse_year(ctx.attr(".film-poster", "data-film-release-year")),
    ),
    Strategy("og-title-year", lambda ctx: _year_in(ctx.og_title)),
    Strategy("page-title-year", lambda ctx: _year_in(ctx.page_title)),
]


# ----------------------------------------------------------------------
# Author
# ----------------------------------------------------------------------

AUTHOR_NAME_STRATEGIES: list[Strategy[str]] = [
    Strategy("name-link", lambda ctx: ctx.text("a.name")),
    Strategy("person-summary", lambda ctx: ctx.text(".person-summary strong")),
    Strategy("username", lambda ctx: ctx.username),
]

AUTHOR_USERNAME_STRATEGIES: list[Strategy[str]] = [
    Strategy("url-first-segment", lambda ctx: ctx.username),
]


# ----------------------------------------------------------------------
# Rating
# ----------------------------------------------------------------------


def scale_rating(raw: int) -> Optional[float]:
    """Map a 0-10 indicator value onto the 0-5 half-star scale."""
    if raw < 0 or raw > MAX_RAW_RATING:
        return None
    return raw / 2


def _rating_from_class(ctx: ExtractionContext) -> Optional[float]:
    classes = ctx.attr("span.rating", "class")
    if not classes:
        return None
    match = _RATED_RE.search(classes)
    if not match:
        return None
    return scale_rating(int(match.group(1)))


RATING_STRATEGIES: list[Strategy[float]] = [
    Strategy("rated-class", _rating_from_class),
]


# ----------------------------------------------------------------------
# Flags
# ----------------------------------------------------------------------


def _indicator(selector: str) -> Callable[[ExtractionContext], Optional[bool]]:
    return lambda ctx: True if ctx.exists(selector) else None


def _spoiler_phrase(ctx: ExtractionContext) -> Optional[bool]:
    body = ctx.soup.body or ctx.soup
    return True if SPOILER_PHRASE in body.get_text().lower() else None


LIKED_STRATEGIES: list[Strategy[bool]] = [
    Strategy("icon-liked", _indicator(".icon-liked")),
    Strategy("data-liked", _indicator('[data-liked="true"]')),
    Strategy("like-link-target", _indicator(".like-link-target.icon-liked")),
]

SPOILER_STRATEGIES: list[Strategy[bool]] = [
    Strategy("spoiler-warning", _indicator(".spoiler-warning")),
    Strategy("contains-spoilers", _indicator(".contains-spoilers")),
    Strategy("data-spoiler", _indicator("[data-spoiler]")),
    Strategy("page-text-phrase", _spoiler_phrase),
]


# ----------------------------------------------------------------------
# Watched date / review body
# ----------------------------------------------------------------------

WATCHED_DATE_STRATEGIES: list[Strategy[str]] = [
    Strategy("time-datetime", lambda ctx: ctx.attr("time", "datetime")),
    Strategy(
        "time-day-month-year",
        lambda ctx: ctx.attr("time.date-day-month-year", "datetime"),
    ),
    Strategy("date-link-text", lambda ctx: ctx.text("a.date span")),
]


def _review_paragraphs(ctx: ExtractionContext) -> Optional[str]:
    paragraphs = []
    for element in ctx.soup.select(REVIEW_PARAGRAPH_SELECTOR):
        text = element.get_text().strip()
        if text:
            paragraphs.append(text)
    return "\n\n".join(paragraphs) or None


REVIEW_TEXT_STRATEGIES: list[Strategy[str]] = [
    Strategy("body-paragraphs", _review_paragraphs),
    Strategy("body-text-raw", lambda ctx: ctx.text(".body-text")),
]


# ----------------------------------------------------------------------
# Images
# ----------------------------------------------------------------------


def upgrade_poster_url(url: str) -> str:
    """Request the larger poster size from the image CDN, over HTTPS."""
    if POSTER_CDN_HOST not in url:
        return url
    url = _CDN_SIZE_RE.sub(POSTER_SIZE_SEGMENT, url)
    return re.sub(r"^http:", "https:", url)


def _og_image_poster(ctx: ExtractionContext) -> Optional[str]:
    image = ctx.attr('meta[property="og:image"]', "content")
    if image and "avatar" not in image:
        return image
    return None


POSTER_STRATEGIES: list[Strategy[str]] = [
    Strategy("poster-img-src", lambda ctx: ctx.attr(".film-poster img", "src")),
    Strategy("poster-img-data-src", lambda ctx: ctx.attr(".film-poster img", "data-src")),
    Strategy("og-image", _og_image_poster),
    Strategy("image-class", lambda ctx: ctx.attr("img.image", "src")),
]

AVATAR_STRATEGIES: list[Strategy[str]] = [
    Strategy("avatar-link-img", lambda ctx: ctx.attr("a.avatar img", "src")),
    Strategy("avatar-container-img", lambda ctx: ctx.attr(".avatar img", "src")),
    Strategy("img-avatar", lambda ctx: ctx.attr("img.avatar", "src")),
]


# ----------------------------------------------------------------------
# Whole-page extraction
# ----------------------------------------------------------------------


def parse_html(html: str, url: str) -> ReviewMetadata:
    """
    Derive review metadata from page markup without any network access.

    Args:
        html: Review page markup
        url: Canonical review URL (username and slug come from its path)

    Returns:
        ReviewMetadata with remote image URLs (nothing embedded yet)
    """
    ctx = ExtractionContext(html, url)

    author_username = run_cascade("author_username", AUTHOR_USERNAME_STRATEGIES, ctx) or UNKNOWN_USER
    poster_url = run_cascade("poster_url", POSTER_STRATEGIES, ctx)

    return ReviewMetadata(
        film_title=run_cascade("film_title", TITLE_STRATEGIES, ctx) or UNKNOWN_FILM,
        film_year=run_cascade("film_year", YEAR_STRATEGIES, ctx),
        author_name=run_cascade("author_name", AUTHOR_NAME_STRATEGIES, ctx) or author_username,
        author_username=author_username,
        avatar_url=run_cascade("avatar_url", AVATAR_STRATEGIES, ctx),
        rating=run_cascade("rating", RATING_STRATEGIES, ctx),
        liked=bool(run_cascade("liked", LIKED_STRATEGIES, ctx)),
        watched_date=run_cascade("watched_date", WATCHED_DATE_STRATEGIES, ctx),
        review_text=run_cascade("review_text", REVIEW_TEXT_STRATEGIES, ctx),
        spoiler=bool(run_cascade("spoiler", SPOILER_STRATEGIES, ctx)),
        poster_url=upgrade_poster_url(poster_url) if poster_url else None,
        review_url=url,
    )
