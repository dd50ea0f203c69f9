"""Review card layouts: HTML documents for the render engine.

Generates a self-contained HTML page per card whose root element is
``#card`` sized exactly to the selected preset. Two layouts:

- classic: poster beside the title block, review text below
- cinematic: tall poster header with the title overlaid, review below
"""

import html
import math
from typing import Optional

from .config import settings
from .models import CardStyle, RenderOptions, ReviewMetadata, SizePreset
from .utils import get_logger

logger = get_logger(__name__)

CARD_ELEMENT_ID = "card"
CARD_SELECTOR = f"#{CARD_ELEMENT_ID}"

ACCENT = "#ff6b35"
STAR_COLOR = "#ffb400"

# Review length budget per preset at 100% font scale
BASE_TEXT_LENGTH = {
    SizePreset.SQUARE: 400,
    SizePreset.PORTRAIT: 700,
    SizePreset.STORY: 1000,
}

TITLE_SIZE = {
    SizePreset.SQUARE: 42,
    SizePreset.PORTRAIT: 48,
    SizePreset.STORY: 56,
}

FONT_STACK = "'Inter', 'Helvetica Neue', 'Segoe UI', Arial, sans-serif"


def _esc(text: Optional[str]) -> str:
    """HTML-escape text for safe injection into templates."""
    return html.escape(str(text), quote=True) if text else ""


def truncate_text(text: Optional[str], max_length: int) -> str:
    """Cut text to max_length characters, marking the cut with an ellipsis."""
    if not text:
        return ""
    if len(text) <= max_length:
        return text
    return text[:max_length].strip() + "..."


def star_markup(rating: Optional[float]) -> str:
    """Full / half / empty star spans for a 0-5 rating."""
    if rating is None:
        return ""
    full = math.floor(rating)
    half = rating % 1 >= 0.5
    empty = 5 - full - (1 if half else 0)
    return (
        '<span class="star full">★</span>' * full
        + ('<span class="star half">★</span>' if half else "")
        + '<span class="star empty">★</span>' * empty
    )


def _paragraphs(text: str) -> str:
    return "".join(f"<p>{_esc(p)}</p>" for p in text.split("\n\n") if p.strip())


class CardRenderer:
    """Turns ReviewMetadata plus render options into a card HTML document."""

    def __init__(self, template_version: Optional[str] = None):
        self.template_version = template_version or settings.template_version

    def generate_html(self, metadata: ReviewMetadata, options: RenderOptions) -> str:
        """
        Generate the full HTML page for a card.

        Args:
            metadata: Review metadata (images may be URLs or data: URIs)
            options: Preset, font scale and layout style

        Returns:
            HTML document with a #card element of the preset's exact size
        """
        dispatch = {
            CardStyle.CLASSIC: self._html_classic,
            CardStyle.CINEMATIC: self._html_cinematic,
        }
        method = dispatch.get(options.style, self._html_classic)
        logger.debug(
            f"Generating {options.style.value} card for '{metadata.film_title}' "
            f"({options.preset.value}, {options.font_scale}%)"
        )
        return method(metadata, options)

    def list_templates(self) -> dict:
        """Preset catalogue for clients."""
        return {
            "templates": [
                {
                    "preset": preset.value,
                    "dimensions": {"width": preset.dimensions[0], "height": preset.dimensions[1]},
                    "description": preset.description,
                }
                for preset in SizePreset
            ],
            "styles": [style.value for style in CardStyle],
            "defaultPreset": SizePreset.SQUARE.value,
            "version": self.template_version,
        }

    # ------------------------------------------------------------------
    # Shared pieces
    # ------------------------------------------------------------------

    def _page(self, body: str, options: RenderOptions, extra_css: str = "") -> str:
        """Wrap card body in a full HTML page with base CSS."""
        width, height = options.preset.dimensions
        s = _scaler(options)
        return f"""<!DOCTYPE html>
<html lang="en"><head><meta charset="utf-8"><style>
* {{ margin: 0; padding: 0; box-sizing: border-box; }}
body {{ font-family: {FONT_STACK}; background: transparent; }}
#{CARD_ELEMENT_ID} {{
  width: {width}px; height: {height}px; overflow: hidden;
  display: flex; flex-direction: column;
  background: linear-gradient(180deg, #14181c 0%, #1c2228 100%);
  color: #e5e5e5;
}}
.film-title {{ font-size: {s(TITLE_SIZE[options.preset])}px; font-weight: 800; color: #fff; line-height: 1.1; letter-spacing: -0.02em; }}
.film-year {{ font-size: {s(32)}px; color: #778; margin-top: 8px; font-weight: 500; }}
.author-row {{ display: flex; align-items: center; gap: 12px; margin-bottom: 16px; }}
.author-avatar {{ width: {s(44)}px; height: {s(44)}px; border-radius: 50%; object-fit: cover; border: 3px solid rgba(255,107,53,0.4); }}
.author-text {{ font-size: {s(18)}px; color: #889; }}
.author-name {{ color: {ACCENT}; font-weight: 600; }}
.liked {{ color: {ACCENT}; font-size: {s(24)}px; margin-left: 12px; }}
.rating-row {{ display: flex; align-items: center; margin-bottom: 20px; }}
.stars {{ font-size: {s(28)}px; letter-spacing: 2px; }}
.star {{ color: {STAR_COLOR}; }}
.star.empty {{ color: #444; }}
.star.half {{ background: linear-gradient(90deg, {STAR_COLOR} 50%, #444 50%); -webkit-background-clip: text; -webkit-text-fill-color: transparent; }}
.spoiler {{ display: inline-block; font-size: {s(14)}px; font-weight: 700; letter-spacing: 2px; text-transform: uppercase; color: #ff8f70; border: 1px solid rgba(255,143,112,0.5); border-radius: 6px; padding: 4px 10px; margin-bottom: 16px; }}
.review-text {{ flex: 1; font-size: {s(22 if options.preset is SizePreset.STORY else 20)}px; line-height: 1.7; color: #ccc; overflow: hidden; }}
.review-text p {{ margin-bottom: {s(16)}px; }}
.card-footer {{ display: flex; justify-content: space-between; font-size: {s(14)}px; color: #556; padding-top: 16px; }}
.poster-image {{ width: 100%; height: 100%; object-fit: cover; }}
.poster-placeholder {{ width: 100%; height: 100%; background: linear-gradient(135deg, #2a2a2a 0%, #1a1a1a 100%); display: flex; align-items: center; justify-content: center; font-size: 64px; color: #333; }}
{extra_css}
</style></head><body>
<div id="{CARD_ELEMENT_ID}">{body}</div>
</body></html>"""

    def _poster(self, metadata: ReviewMetadata) -> str:
        if metadata.poster_url:
            return f'<img class="poster-image" src="{_esc(metadata.poster_url)}" alt="">'
        return '<div class="poster-placeholder">🎬</div>'

    def _author_row(self, metadata: ReviewMetadata) -> str:
        avatar = ""
        if metadata.avatar_url:
            avatar = f'<img class="author-avatar" src="{_esc(metadata.avatar_url)}" alt="">'
        return f"""
<div class="author-row">
  {avatar}
  <div class="author-text">Review by <span class="author-name">{_esc(metadata.author_name)}</span></div>
</div>"""

    def _rating_row(self, metadata: ReviewMetadata) -> str:
        stars = star_markup(metadata.rating)
        liked = '<span class="liked">♥</span>' if metadata.liked else ""
        if not stars and not liked:
            return ""
        return f'<div class="rating-row"><span class="stars">{stars}</span>{liked}</div>'

    def _review_block(self, metadata: ReviewMetadata, options: RenderOptions) -> str:
        max_length = round(BASE_TEXT_LENGTH[options.preset] / options.font_multiplier)
        review = truncate_text(metadata.review_text, max_length)
        spoiler = '<div class="spoiler">Contains spoilers</div>' if metadata.spoiler else ""
        return f'{spoiler}<div class="review-text">{_paragraphs(review)}</div>'

    def _footer(self, metadata: ReviewMetadata) -> str:
        watched = f"Watched {_esc(metadata.watched_date)}" if metadata.watched_date else ""
        return f'<div class="card-footer"><span>{watched}</span><span>@{_esc(metadata.author_username)}</span></div>'

    # ------------------------------------------------------------------
    # Layouts
    # ------------------------------------------------------------------

    def _html_classic(self, metadata: ReviewMetadata, options: RenderOptions) -> str:
        height = options.preset.dimensions[1]
        poster_height = math.floor(height * 0.36)
        poster_width = math.floor(poster_height * 2 / 3)
        year = f'<div class="film-year">{metadata.film_year}</div>' if metadata.film_year else ""
        body = f"""
<div class="classic-header">
  <div class="poster-wrapper">{self._poster(metadata)}</div>
  <div class="title-block">
    <div class="film-title">{_esc(metadata.film_title)}</div>
    {year}
    <div style="margin-top:24px;">{self._rating_row(metadata)}</div>
  </div>
</div>
<div class="content-section">
  {self._author_row(metadata)}
  {self._review_block(metadata, options)}
  {self._footer(metadata)}
</div>"""
        css = f"""
.classic-header {{ display: flex; gap: 36px; padding: 56px 56px 32px 56px; }}
.poster-wrapper {{ flex-shrink: 0; width: {poster_width}px; height: {poster_height}px; border-radius: 12px; overflow: hidden; box-shadow: 0 20px 50px rgba(0,0,0,0.6); }}
.title-block {{ flex: 1; display: flex; flex-direction: column; justify-content: flex-end; }}
.content-section {{ flex: 1; display: flex; flex-direction: column; padding: 0 56px 40px 56px; min-height: 0; }}
"""
        return self._page(body, options, css)

    def _html_cinematic(self, metadata: ReviewMetadata, options: RenderOptions) -> str:
        height = options.preset.dimensions[1]
        header_height = math.floor(height * 0.5)
        poster_width = math.floor(header_height * 0.67)
        year = f'<div class="film-year">({metadata.film_year})</div>' if metadata.film_year else ""
        body = f"""
<div class="header-section">
  <div class="poster-wrapper">{self._poster(metadata)}</div>
  <div class="title-section">
    <div class="film-title">{_esc(metadata.film_title)}</div>
    {year}
  </div>
</div>
<div class="content-section">
  {self._author_row(metadata)}
  {self._rating_row(metadata)}
  {self._review_block(metadata, options)}
  {self._footer(metadata)}
</div>"""
        css = f"""
#{CARD_ELEMENT_ID} {{ background: linear-gradient(180deg, #0f0f0f 0%, #1a1a1a 100%); border-radius: 24px; }}
.header-section {{ display: flex; padding: 32px; gap: 28px; height: {header_height}px; background: linear-gradient(180deg, rgba(0,0,0,0.4) 0%, transparent 100%); }}
.poster-wrapper {{ flex-shrink: 0; width: {poster_width}px; height: 100%; border-radius: 12px; overflow: hidden; box-shadow: 0 20px 50px rgba(0,0,0,0.6); }}
.title-section {{ flex: 1; display: flex; flex-direction: column; justify-content: flex-end; padding-bottom: 16px; }}
.content-section {{ flex: 1; padding: 0 32px 24px 32px; display: flex; flex-direction: column; min-height: 0; }}
"""
        return self._page(body, options, css)


def _scaler(options: RenderOptions):
    multiplier = options.font_multiplier
    return lambda size: round(size * multiplier)
