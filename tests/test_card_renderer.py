"""Tests for card layout HTML generation."""

import re

import pytest

from reviewcard.card_renderer import CardRenderer, star_markup, truncate_text
from reviewcard.models import CardStyle, RenderOptions, ReviewMetadata, SizePreset


@pytest.fixture
def renderer() -> CardRenderer:
    return CardRenderer(template_version="v1")


@pytest.fixture
def metadata() -> ReviewMetadata:
    return ReviewMetadata(
        film_title="Parasite",
        author_name="Jane Doe",
        author_username="jane",
        film_year=2019,
        rating=3.5,
        liked=True,
        watched_date="2024-03-15",
        review_text="First paragraph.\n\nSecond paragraph.",
        poster_url="data:image/jpeg;base64,AAAA",
    )


def _card_size(html: str) -> tuple[int, int]:
    match = re.search(r"#card \{\s*width: (\d+)px; height: (\d+)px", html)
    assert match, "card size rule missing"
    return int(match.group(1)), int(match.group(2))


class TestLayout:
    @pytest.mark.parametrize("preset", list(SizePreset))
    @pytest.mark.parametrize("style", list(CardStyle))
    def test_card_matches_preset_size(
        self, renderer: CardRenderer, metadata: ReviewMetadata, preset: SizePreset, style: CardStyle
    ) -> None:
        html = renderer.generate_html(metadata, RenderOptions(preset=preset, style=style))
        assert _card_size(html) == preset.dimensions
        assert 'id="card"' in html

    def test_content_present(self, renderer: CardRenderer, metadata: ReviewMetadata) -> None:
        html = renderer.generate_html(metadata, RenderOptions())
        assert "Parasite" in html
        assert "2019" in html
        assert "Jane Doe" in html
        assert "@jane" in html
        assert "<p>First paragraph.</p><p>Second paragraph.</p>" in html
        assert 'class="liked"' in html
        assert "data:image/jpeg;base64,AAAA" in html

    def test_text_is_escaped(self, renderer: CardRenderer, metadata: ReviewMetadata) -> None:
        metadata.film_title = "<script>alert(1)</script>"
        html = renderer.generate_html(metadata, RenderOptions())
        assert "<script>alert(1)</script>" not in html
        assert "&lt;script&gt;" in html

    def test_placeholder_without_poster(self, renderer: CardRenderer, metadata: ReviewMetadata) -> None:
        metadata.poster_url = None
        html = renderer.generate_html(metadata, RenderOptions())
        assert "poster-placeholder" in html

    def test_spoiler_badge(self, renderer: CardRenderer, metadata: ReviewMetadata) -> None:
        metadata.spoiler = True
        assert "Contains spoilers" in renderer.generate_html(metadata, RenderOptions())

    def test_font_scale_changes_sizes(self, renderer: CardRenderer, metadata: ReviewMetadata) -> None:
        small = renderer.generate_html(metadata, RenderOptions(font_scale=50))
        large = renderer.generate_html(metadata, RenderOptions(font_scale=150))
        assert ".film-title { font-size: 21px" in small
        assert ".film-title { font-size: 63px" in large

    def test_larger_font_truncates_review_sooner(self, renderer: CardRenderer, metadata: ReviewMetadata) -> None:
        metadata.review_text = "word " * 400
        normal = renderer.generate_html(metadata, RenderOptions(font_scale=100))
        large = renderer.generate_html(metadata, RenderOptions(font_scale=150))
        assert len(large) < len(normal)


class TestHelpers:
    def test_stars(self) -> None:
        markup = star_markup(3.5)
        assert markup.count("star full") == 3
        assert markup.count("star half") == 1
        assert markup.count("star empty") == 1
        assert star_markup(None) == ""

    def test_zero_rating_renders_empty_stars(self) -> None:
        assert star_markup(0.0).count("star empty") == 5

    def test_truncate(self) -> None:
        assert truncate_text("short", 10) == "short"
        assert truncate_text("a long sentence here", 6) == "a long..."
        assert truncate_text(None, 5) == ""

    def test_template_catalogue(self, renderer: CardRenderer) -> None:
        catalogue = renderer.list_templates()
        assert catalogue["defaultPreset"] == "square"
        assert catalogue["version"] == "v1"
        assert {t["preset"] for t in catalogue["templates"]} == {"square", "portrait", "story"}
        story = next(t for t in catalogue["templates"] if t["preset"] == "story")
        assert story["dimensions"] == {"width": 1080, "height": 1920}
