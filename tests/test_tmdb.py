"""Tests for the TMDB poster lookup adapter."""

import pytest
import requests

from conftest import FakeResponse, FakeSession
from reviewcard.adapters import MovieMatch, NullPosterLookup, TMDBPosterLookup
from reviewcard.adapters.tmdb import TMDB_API_BASE

SEARCH_URL = f"{TMDB_API_BASE}/search/movie"

PARASITE = {
    "id": 496243,
    "title": "Parasite",
    "release_date": "2019-05-30",
    "poster_path": "/7IiTTgloJzvGI1TAYymCfbfl3vT.jpg",
}


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def lookup(session: FakeSession) -> TMDBPosterLookup:
    return TMDBPosterLookup(api_key="test-key", session=session, timeout=1, retries=2, retry_delay=0)


class TestSearch:
    def test_first_result_becomes_w500_poster(self, lookup: TMDBPosterLookup, session: FakeSession) -> None:
        session.get_routes[SEARCH_URL] = FakeResponse(200, json_data={"results": [PARASITE, {"id": 2}]})

        url = lookup.find_poster_url("Parasite", 2019)

        assert url == "https://image.tmdb.org/t/p/w500/7IiTTgloJzvGI1TAYymCfbfl3vT.jpg"
        _, _, kwargs = session.calls[0]
        assert kwargs["params"]["query"] == "Parasite"
        assert kwargs["params"]["year"] == "2019"
        assert kwargs["params"]["include_adult"] == "false"
        assert kwargs["params"]["language"] == "en-US"
        assert kwargs["timeout"] == 1

    def test_retries_without_year_when_no_results(self, lookup: TMDBPosterLookup, session: FakeSession) -> None:
        def search(kwargs: dict) -> FakeResponse:
            if "year" in kwargs["params"]:
                return FakeResponse(200, json_data={"results": []})
            return FakeResponse(200, json_data={"results": [PARASITE]})

        session.get_routes[SEARCH_URL] = search

        match = lookup.search_movie("Parasite", 2018)

        assert match is not None and match.year == 2019
        assert session.count("GET", SEARCH_URL) == 2

    def test_no_results_without_year(self, lookup: TMDBPosterLookup, session: FakeSession) -> None:
        session.get_routes[SEARCH_URL] = FakeResponse(200, json_data={"results": []})
        assert lookup.find_poster_url("Nothing") is None
        assert session.count("GET", SEARCH_URL) == 1

    def test_result_without_poster(self, lookup: TMDBPosterLookup, session: FakeSession) -> None:
        session.get_routes[SEARCH_URL] = FakeResponse(
            200, json_data={"results": [{**PARASITE, "poster_path": None}]}
        )
        assert lookup.find_poster_url("Parasite", 2019) is None


class TestFailures:
    """Lookup failures never raise."""

    def test_api_error_status(self, lookup: TMDBPosterLookup, session: FakeSession) -> None:
        session.get_routes[SEARCH_URL] = FakeResponse(401)
        assert lookup.find_poster_url("Parasite") is None

    def test_invalid_json(self, lookup: TMDBPosterLookup, session: FakeSession) -> None:
        session.get_routes[SEARCH_URL] = FakeResponse(200, text="<html>")
        assert lookup.find_poster_url("Parasite") is None

    def test_transport_errors_retried_with_bound(self, lookup: TMDBPosterLookup, session: FakeSession) -> None:
        session.get_routes[SEARCH_URL] = requests.Timeout("slow")
        assert lookup.find_poster_url("Parasite") is None
        assert session.count("GET", SEARCH_URL) == 3


class TestMovieMatch:
    def test_year_from_release_date(self) -> None:
        assert MovieMatch(tmdb_id=1, title="x", release_date="1995-12-15").year == 1995
        assert MovieMatch(tmdb_id=1, title="x", release_date="").year is None

    def test_null_lookup(self) -> None:
        assert NullPosterLookup().find_poster_url("Parasite", 2019) is None
