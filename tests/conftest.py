"""Shared fakes and fixtures: HTTP session, poster lookup, Playwright browser, clock."""

import asyncio
import io
from typing import Callable, Optional, Union

import pytest
import requests
from PIL import Image

from reviewcard.adapters import PosterLookup
from reviewcard.cache import ImageCache, MetadataCache
from reviewcard.card_renderer import CardRenderer
from reviewcard.extraction import ImageEmbedder, ReviewExtractor
from reviewcard.rate_limit import RateLimiter
from reviewcard.render_engine import RenderEngine
from reviewcard.service import ReviewCardService
from reviewcard.url_normalizer import UrlNormalizer

REVIEW_URL = "https://letterboxd.com/jane/film/parasite/"
SHORT_URL = "https://boxd.it/abc12"
PAGE_POSTER = "https://a.ltrbxd.com/resized/film-poster/4/2/6/4/0/6/426406-parasite-0-460-0-690-crop.jpg"
AVATAR_URL = "https://a.ltrbxd.com/resized/avatar/upload/jane-0-80-0-80-crop.jpg"
TMDB_POSTER = "https://image.tmdb.org/t/p/w500/7IiTTgloJzvGI1TAYymCfbfl3vT.jpg"

REVIEW_HTML = f"""<!DOCTYPE html>
<html>
<head>
  <title>'Other Film' review by Jane Doe - Letterboxd</title>
  <meta property="og:title" content="A review of Parasite (2019)">
  <meta property="og:image" content="https://a.ltrbxd.com/resized/sm/upload/og-share.jpg">
</head>
<body>
  <div class="film-poster" data-film-name="Parasite" data-film-release-year="2019">
    <img src="http://a.ltrbxd.com/resized/film-poster/4/2/6/4/0/6/426406-parasite-0-150-0-225-crop.jpg">
  </div>
  <a class="avatar" href="/jane/"><img src="{AVATAR_URL}"></a>
  <a class="name" href="/jane/">Jane Doe</a>
  <span class="rating rated-7">&#9733;&#9733;&#9733;&#189;</span>
  <span class="like-link-target icon-liked"></span>
  <time datetime="2024-03-15">15 Mar 2024</time>
  <div class="review">
    <div class="body-text">
      <div>
        <p>Bong Joon-ho builds a house and then floods it.</p>
        <p>   </p>
        <p>Every staircase means something.</p>
      </div>
    </div>
  </div>
</body>
</html>
"""

BARE_HTML = "<html><head></head><body><p>Nothing to see</p></body></html>"


# ----------------------------------------------------------------------
# HTTP
# ----------------------------------------------------------------------


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(
        self,
        status_code: int = 200,
        text: str = "",
        content: bytes = b"",
        headers: Optional[dict] = None,
        url: Optional[str] = None,
        json_data: Optional[dict] = None,
    ):
        self.status_code = status_code
        self.text = text
        self.content = content or text.encode("utf-8")
        self.headers = headers or {}
        self.url = url
        self._json = json_data

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self) -> dict:
        if self._json is None:
            raise ValueError("No JSON body")
        return self._json


Route = Union[FakeResponse, Exception, Callable[[dict], FakeResponse]]


class FakeSession:
    """Routes GET/HEAD by exact URL; unknown URLs answer 404."""

    def __init__(self):
        self.headers: dict = {}
        self.get_routes: dict[str, Route] = {}
        self.head_routes: dict[str, Route] = {}
        self.calls: list[tuple[str, str, dict]] = []

    def _dispatch(self, routes: dict, method: str, url: str, kwargs: dict) -> FakeResponse:
        self.calls.append((method, url, kwargs))
        route = routes.get(url)
        if route is None:
            return FakeResponse(404, url=url)
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route(kwargs)
        if route.url is None:
            route.url = url
        return route

    def get(self, url: str, **kwargs) -> FakeResponse:
        return self._dispatch(self.get_routes, "GET", url, kwargs)

    def head(self, url: str, **kwargs) -> FakeResponse:
        return self._dispatch(self.head_routes, "HEAD", url, kwargs)

    def count(self, method: str, url: str) -> int:
        return sum(1 for m, u, _ in self.calls if m == method and u == url)


class FakePosterLookup(PosterLookup):
    def __init__(self, poster_url: Optional[str] = None):
        self.poster_url = poster_url
        self.queries: list[tuple[str, Optional[int]]] = []

    def find_poster_url(self, title: str, year: Optional[int] = None) -> Optional[str]:
        self.queries.append((title, year))
        return self.poster_url


# ----------------------------------------------------------------------
# Playwright
# ----------------------------------------------------------------------


def png_bytes(width: int, height: int) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), (20, 24, 28)).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeLocator:
    def __init__(self, page: "FakePage", selector: str):
        self.page = page
        self.selector = selector

    async def screenshot(self, **kwargs) -> bytes:
        self.page.screenshots.append((self.selector, kwargs))
        return png_bytes(*self.page.viewport)


class FakePage:
    def __init__(self, browser: "FakeBrowser"):
        self.browser = browser
        self.closed = False
        self.viewport: Optional[tuple[int, int]] = None
        self.content_calls: list[dict] = []
        self.screenshots: list[tuple[str, dict]] = []

    def is_closed(self) -> bool:
        return self.closed

    async def set_viewport_size(self, size: dict) -> None:
        self.viewport = (size["width"], size["height"])

    async def set_content(self, html: str, **kwargs) -> None:
        self.content_calls.append({"html": html, **kwargs})
        if self.browser.content_delay:
            await asyncio.sleep(self.browser.content_delay)
        if self.browser.content_error is not None:
            raise self.browser.content_error

    async def wait_for_timeout(self, timeout: float) -> None:
        await asyncio.sleep(0)

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    async def close(self) -> None:
        self.closed = True


class FakeBrowser:
    def __init__(
        self,
        content_delay: float = 0.0,
        content_error: Optional[Exception] = None,
        connected: bool = True,
    ):
        self.content_delay = content_delay
        self.content_error = content_error
        self.connected = connected
        self.closed = False
        self.pages: list[FakePage] = []
        self.handlers: dict[str, list] = {}

    def is_connected(self) -> bool:
        return self.connected

    def on(self, event: str, handler) -> None:
        self.handlers.setdefault(event, []).append(handler)

    async def new_page(self) -> FakePage:
        page = FakePage(self)
        self.pages.append(page)
        return page

    async def close(self) -> None:
        self.closed = True
        self.connected = False

    def disconnect(self) -> None:
        """Simulate the browser process going away."""
        self.connected = False
        for page in self.pages:
            page.closed = True
        for handler in self.handlers.get("disconnected", []):
            handler(self)


class FakeLauncher:
    """Browser factory that counts launches."""

    def __init__(self, delay: float = 0.0, error: Optional[Exception] = None, **browser_kwargs):
        self.delay = delay
        self.error = error
        self.browser_kwargs = browser_kwargs
        self.calls = 0
        self.browsers: list[FakeBrowser] = []

    async def __call__(self) -> FakeBrowser:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        browser = FakeBrowser(**self.browser_kwargs)
        self.browsers.append(browser)
        return browser


class FakeClock:
    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ----------------------------------------------------------------------
# Fixtures
# ----------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def http() -> FakeSession:
    """Session serving the sample review, its short link and its images."""
    session = FakeSession()
    session.get_routes[REVIEW_URL] = FakeResponse(200, text=REVIEW_HTML)
    session.head_routes[SHORT_URL] = FakeResponse(200, url=REVIEW_URL)
    session.get_routes[TMDB_POSTER] = FakeResponse(
        200, content=b"tmdb-poster", headers={"content-type": "image/jpeg"}
    )
    session.get_routes[PAGE_POSTER] = FakeResponse(
        200, content=b"page-poster", headers={"content-type": "image/jpeg"}
    )
    session.get_routes[AVATAR_URL] = FakeResponse(
        200, content=b"avatar", headers={"content-type": "image/png"}
    )
    return session


@pytest.fixture
def poster_lookup() -> FakePosterLookup:
    return FakePosterLookup(TMDB_POSTER)


@pytest.fixture
def embedder(http: FakeSession) -> ImageEmbedder:
    return ImageEmbedder(session=http, timeout=1, retries=0, retry_delay=0)


@pytest.fixture
def extractor(http: FakeSession, poster_lookup: FakePosterLookup, embedder: ImageEmbedder) -> ReviewExtractor:
    return ReviewExtractor(session=http, poster_lookup=poster_lookup, embedder=embedder, timeout=1)


@pytest.fixture
def normalizer(http: FakeSession) -> UrlNormalizer:
    return UrlNormalizer(session=http, timeout=1)


@pytest.fixture
def launcher() -> FakeLauncher:
    return FakeLauncher()


def build_service(
    normalizer: UrlNormalizer,
    extractor: ReviewExtractor,
    launcher: FakeLauncher,
    clock: FakeClock,
    rate_limiter: Optional[RateLimiter] = None,
    sweep_interval_seconds: float = 300,
) -> ReviewCardService:
    """Service wired entirely to fakes; construct inside a running loop."""
    return ReviewCardService(
        normalizer=normalizer,
        extractor=extractor,
        metadata_cache=MetadataCache(ttl_seconds=1800, max_entries=100, clock=clock),
        image_cache=ImageCache(ttl_seconds=3600, max_entries=50, clock=clock),
        card_renderer=CardRenderer(template_version="v1"),
        engine=RenderEngine(pool_size=5, timeout_ms=5000, settle_ms=0, launcher=launcher),
        sweep_interval_seconds=sweep_interval_seconds,
        rate_limiter=rate_limiter,
    )


@pytest.fixture
def transport_error() -> requests.ConnectionError:
    return requests.ConnectionError("connection reset")
