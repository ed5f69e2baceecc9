"""
Pytest configuration and fixtures for the explorer test suite.
"""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from bs4 import BeautifulSoup

from explorer.services.reference_data import load_gazetteer, load_mappings

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def read_fixture(name: str) -> str:
    return (FIXTURES_DIR / name).read_text(encoding="utf-8")


@pytest.fixture
def product_html():
    """Rendered detail page of a bourbon, with every field group present."""
    return read_fixture("product_page.html")


@pytest.fixture
def product_soup(product_html):
    return BeautifulSoup(product_html, "html.parser")


@pytest.fixture
def search_html():
    """Rendered search result page for the crawl keyword."""
    return read_fixture("search_page.html")


@pytest.fixture
def search_soup(search_html):
    return BeautifulSoup(search_html, "html.parser")


@pytest.fixture
def gazetteer():
    return load_gazetteer(FIXTURES_DIR / "iso3166-2.json")


@pytest.fixture
def mappings():
    return load_mappings(FIXTURES_DIR / "countries.json")


@pytest.fixture
def record_store():
    """Record store double: nothing stored yet, every create succeeds."""
    store = AsyncMock()
    store.exists.return_value = []
    store.create.side_effect = lambda draft: draft
    return store
