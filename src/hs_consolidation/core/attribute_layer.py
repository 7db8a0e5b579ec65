# core/attribute_layer.py

"""
This file implements the Attribute Layer.

Given a category and the listings grouped under it, the attribute layer
derives one representative value per attribute the category declares.

For every member product a candidate value is taken from:

    1. the product's own explicit attribute, if present
    2. otherwise a keyword guess from its name + description
       (only for main ingredient, preparation type and storage type)

Candidates are coerced to the attribute's declared type and allowed
values, then the plurality value wins. A tie for first place yields
no value for that attribute.

Public API used by the consolidation engine:

    extract_attributes(category, products) -> dict
"""

# Type hints
from __future__ import annotations
from collections import Counter
from typing import Any, Callable, Dict, List, Optional, Sequence

import logging

# Internal dependencies
from ..models import AttributeDefinition, ProductCategory, ProductVariant
from ..preprocessing.attribute_values import coerce_attribute_value, is_null

logger = logging.getLogger(__name__)


# ------------------------------------------------------------
# Keyword tables for guessing
# ------------------------------------------------------------

MAIN_INGREDIENTS = (
    "chicken", "beef", "pork", "fish", "grapes", "apple", "orange",
    "cheese", "milk", "cream", "butter", "chocolate", "coffee",
    "tomato", "potato", "wheat", "rice", "corn", "soy",
)

PREPARATION_TYPES = (
    "frozen", "canned", "dried", "fresh", "smoked", "cured",
    "fermented", "roasted", "baked", "fried", "breaded",
)

# Ordered: the first storage class whose cue appears wins
STORAGE_CUES = (
    ("Frozen", ("frozen", "freezer")),
    ("Refrigerated", ("refrigerat", "chilled", "cold")),
    ("Ambient", ("shelf", "ambient", "pantry")),
)

# Explicit attribute keys accepted on listings, by attribute name
_EXPLICIT_KEYS = {
    "main_ingredient": ("main_ingredient", "mainIngredient"),
    "preparation_type": ("preparation_type", "preparationType"),
    "storage_type": ("storage_type", "storageType"),
}


def _listing_text(product: ProductVariant) -> str:
    return f"{product.name} {product.description or ''}".lower()


def guess_main_ingredient(text: str) -> Optional[str]:
    for word in MAIN_INGREDIENTS:
        if word in text:
            return word.capitalize()
    return None


def guess_preparation_type(text: str) -> Optional[str]:
    for word in PREPARATION_TYPES:
        if word in text:
            return word.capitalize()
    return None


def guess_storage_type(text: str) -> Optional[str]:
    for label, cues in STORAGE_CUES:
        if any(cue in text for cue in cues):
            return label
    return None


GUESSERS: Dict[str, Callable[[str], Optional[str]]] = {
    "main_ingredient": guess_main_ingredient,
    "preparation_type": guess_preparation_type,
    "storage_type": guess_storage_type,
}


# ------------------------------------------------------------
# Candidate collection and voting
# ------------------------------------------------------------

def _explicit_value(product: ProductVariant, name: str) -> Any:
    attrs = product.attributes or {}
    for key in _EXPLICIT_KEYS.get(name, (name,)):
        if key in attrs and not is_null(attrs[key]):
            return attrs[key]
    return None


def candidate_value(product: ProductVariant, definition: AttributeDefinition) -> Any:
    """
    Value one product contributes to the vote for `definition`.

    Explicit attributes win over keyword guesses. Returns None if the
    product has nothing usable for this attribute.
    """
    raw = _explicit_value(product, definition.name)
    if raw is None and definition.name in GUESSERS:
        raw = GUESSERS[definition.name](_listing_text(product))
    if raw is None:
        return None
    return coerce_attribute_value(raw, definition)


def plurality(values: Sequence[Any]) -> Any:
    """
    Most common value, or None if there is none or the top count is tied.
    """
    # Lists are not hashable; vote on a tuple and hand back a list
    keyed = [tuple(v) if isinstance(v, list) else v for v in values if v is not None]
    if not keyed:
        return None
    ranked = Counter(keyed).most_common(2)
    if len(ranked) > 1 and ranked[0][1] == ranked[1][1]:
        return None
    top = ranked[0][0]
    return list(top) if isinstance(top, tuple) else top


def extract_attributes(
    category: ProductCategory,
    products: Sequence[ProductVariant],
) -> Dict[str, Any]:
    """
    Representative attribute values for a group of products.

    Parameters
    ----------
    category :
        Category the products were assigned to. Only attributes it
        declares are extracted.
    products :
        Member listings of one result group.

    Returns
    -------
    Dict[str, Any]
        Attribute name → value. Attributes with no candidates or a tied
        vote are omitted.
    """
    out: Dict[str, Any] = {}
    for definition in category.attribute_definitions:
        votes: List[Any] = [candidate_value(p, definition) for p in products]
        value = plurality(votes)
        if value is not None:
            out[definition.name] = value
        elif definition.required:
            logger.debug(
                "attributes.missing category=%s attribute=%s n=%d",
                category.id, definition.name, len(products),
            )
    return out
