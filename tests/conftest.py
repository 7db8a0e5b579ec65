import pytest

from hs_consolidation.catalogs import load_categories, load_hs_nodes
from hs_consolidation.config.settings import Settings
from hs_consolidation.core.similarity_cache import SimilarityCache
from hs_consolidation.models import ProductVariant

from .fakes import FakeClock, KeywordGateway


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def categories():
    return load_categories()


@pytest.fixture
def hs_nodes():
    return load_hs_nodes()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return SimilarityCache(max_entries=100, default_ttl_seconds=60.0, clock=clock)


@pytest.fixture
def wine_products():
    return [
        ProductVariant(id="p1", name="Red Wine Cabernet"),
        ProductVariant(id="p2", name="Red Wine Merlot"),
        ProductVariant(id="p3", name="Leather Wallet"),
    ]


@pytest.fixture
def wine_gateway():
    return KeywordGateway(
        {
            "cabernet": [1.0, 0.0, 0.0],
            "merlot": [0.99, 0.05, 0.0],
            "wallet": [0.0, 0.0, 1.0],
        }
    )
