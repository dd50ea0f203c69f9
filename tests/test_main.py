"""Tests for the command line entry point and settings loading."""

import json

import pytest
from PIL import Image

from conftest import png_bytes
from reviewcard import main as cli
from reviewcard.config import Settings
from reviewcard.errors import ErrorCode, ReviewFetchError
from reviewcard.models import ReviewMetadata
from reviewcard.service import RenderResult

REVIEW_URL = "https://letterboxd.com/jane/film/parasite/"


class FakeService:
    error = None
    last_options = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return None

    async def render(self, url=None, session_id=None, options=None):
        if FakeService.error:
            raise FakeService.error
        FakeService.last_options = options
        return RenderResult(png=png_bytes(*options.preset.dimensions), cache_hit=False, cache_key="k")

    async def parse(self, url):
        return ReviewMetadata(
            film_title="Parasite",
            author_name="Jane",
            author_username="jane",
            poster_url="data:image/jpeg;base64," + "A" * 100,
        )


@pytest.fixture(autouse=True)
def fake_service(monkeypatch):
    FakeService.error = None
    FakeService.last_options = None
    monkeypatch.setattr(cli, "ReviewCardService", FakeService)
    monkeypatch.setattr(cli, "setup_logging", lambda **kwargs: None)


class TestRenderCommand:
    def test_writes_png(self, tmp_path) -> None:
        output = tmp_path / "card.png"

        code = cli.main([REVIEW_URL, "--preset", "story", "--style", "cinematic", "--font-scale", "400", "--output", str(output)])

        assert code == 0
        with Image.open(output) as image:
            assert image.size == (1080, 1920)
        assert FakeService.last_options.font_scale == 150

    def test_default_output_path(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr(cli.settings, "output_dir", tmp_path)
        assert cli.main([REVIEW_URL]) == 0
        assert (tmp_path / "jane_film_parasite_square.png").exists()

    def test_pipeline_error_exit_code(self, tmp_path) -> None:
        FakeService.error = ReviewFetchError(ErrorCode.NOT_FOUND, "Review not found")
        assert cli.main([REVIEW_URL, "--output", str(tmp_path / "x.png")]) == 1

    def test_url_required(self) -> None:
        assert cli.main([]) == 1


class TestMetadataCommand:
    def test_prints_metadata_without_payloads(self, capsys) -> None:
        assert cli.main([REVIEW_URL, "--metadata-only"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["filmTitle"] == "Parasite"
        assert data["posterUrl"].startswith("<embedded")


class TestSettings:
    def test_env_aliases(self, monkeypatch) -> None:
        monkeypatch.setenv("RENDER_POOL_SIZE", "3")
        monkeypatch.setenv("TMDB_API_KEY", "abc")
        loaded = Settings(_env_file=None)
        assert loaded.render_pool_size == 3
        assert loaded.tmdb_enabled is True

    def test_placeholder_key_disables_tmdb(self) -> None:
        assert Settings(_env_file=None, TMDB_API_KEY="your_tmdb_api_key_here").tmdb_enabled is False
