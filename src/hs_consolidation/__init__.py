"""
Product listing consolidation and HS-code suggestion.

    from hs_consolidation import ConsolidationEngine, SimilarityCache, load_categories
    from hs_consolidation.gateways import SentenceTransformerGateway

    engine = ConsolidationEngine(
        load_categories(),
        SentenceTransformerGateway(),
        cache=SimilarityCache(),
    )
    results = engine.consolidate_sync(products)
"""

from .catalogs import load_categories, load_hs_nodes
from .config.settings import Settings, get_settings
from .core import ConsolidationEngine, SimilarityCache
from .hs import HSCatalog, HSCodeHierarchyService
from .models import (
    AttributeDefinition,
    CategoryResult,
    HSCodeRequest,
    HSCodeSuggestion,
    ProductCategory,
    ProductVariant,
    ResultSource,
)

__version__ = "0.1.0"
