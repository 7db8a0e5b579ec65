# preprocessing/attribute_values.py

"""
Attribute value cleaning.

Listings arrive with attributes as whatever the exporter typed: numbers as
strings with thousands separators, lists as comma/slash separated text,
yes/no flags. These helpers coerce raw values into the type declared by a
category's AttributeDefinition, and turn an uploaded table into
ProductVariant records.
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
import regex as re

from ..models import AttributeDefinition, ProductVariant


NULL_TOKENS = {"", "nan", "none", "null", "n/a", "unknown"}

# Pure integer/float: no commas, optional decimal point
_DECIMAL = re.compile(r"^[+-]?\d+(?:\.\d+)?$")

# Thousands pattern: 1–3 digits, then one or more ",ddd" groups, optional .decimals
# Examples: "1,234", "12,345,678", "-1,234.56"
_THOUSANDS = re.compile(r"^[+-]?\d{1,3}(?:,\d{3})+(?:\.\d+)?$")

_TRUE = {"true", "yes", "y", "1"}
_FALSE = {"false", "no", "n", "0"}

# Columns mapped onto ProductVariant fields rather than attributes
_FIELD_COLUMNS = {
    "id": ("id", "product_id", "sku", "item_id"),
    "name": ("name", "product_name", "title"),
    "description": ("description", "desc", "product_description"),
    "category": ("category", "category_name", "product_category"),
}


def is_null(x: Any) -> bool:
    if x is None:
        return True
    if isinstance(x, float) and np.isnan(x):
        return True
    return isinstance(x, str) and x.strip().lower() in NULL_TOKENS


# ============================================================
#   Numbers
# ============================================================

def safe_to_float(x: Any) -> float:
    """
    Best-effort conversion to float.
    Handles ints/floats, decimal strings, and thousands-style strings.
    Returns np.nan if not convertible.
    """
    if isinstance(x, bool):
        return np.nan
    if isinstance(x, (int, float, np.number)):
        return float(x)

    if isinstance(x, str):
        s = x.strip()
        if _THOUSANDS.match(s):
            s = s.replace(",", "")
        elif not _DECIMAL.match(s):
            return np.nan
        try:
            return float(s)
        except ValueError:
            return np.nan

    return np.nan


def to_number_if_numeric_string(x: Any) -> Any:
    """Return an int/float for numeric-looking strings, otherwise x unchanged."""
    if not isinstance(x, str):
        return x
    s = x.strip()
    if not (_DECIMAL.match(s) or _THOUSANDS.match(s)):
        # "23,42" or "1,2,3" look more like lists than numbers
        return x
    num = safe_to_float(s)
    if np.isnan(num):
        return x
    return int(num) if num.is_integer() else num


# ============================================================
#   Lists
# ============================================================

def is_list_like_cell(x: Any) -> bool:
    """
    Heuristic for a single value: does this look like a list?

    Returns True for things like:
    - "beef; pork; chicken"
    - "Merlot, Cabernet"
    - "red / white / rosé"
    """
    if isinstance(x, (list, tuple)):
        return True
    if is_null(x):
        return False

    s = str(x).strip()
    if re.search(r"[;,\|\n]", s):
        return True
    if " / " in s:
        return True
    return s.count("/") >= 2


def parse_list_value(x: Any) -> List[str]:
    """Split a list-like value into its trimmed, non-empty items."""
    if isinstance(x, (list, tuple)):
        return [str(v).strip() for v in x if not is_null(v)]
    if is_null(x):
        return []
    parts = re.split(r"\s*[;,\|\n]\s*|\s+/\s+", str(x).strip())
    if len(parts) == 1 and parts[0].count("/") >= 2:
        parts = parts[0].split("/")
    return [p.strip() for p in parts if p.strip()]


# ============================================================
#   Coercion against an attribute definition
# ============================================================

def canonical_allowed_value(value: Any, allowed: Optional[Sequence[str]]) -> Optional[str]:
    """
    Map `value` to the catalog spelling of an allowed value.

    Matching is case-insensitive. Returns the value unchanged when no
    allowed values are declared and None when the value is not allowed.
    """
    s = str(value).strip()
    if not allowed:
        return s
    lookup = {a.lower(): a for a in allowed}
    return lookup.get(s.lower())


def coerce_attribute_value(value: Any, definition: AttributeDefinition) -> Any:
    """
    Coerce a raw attribute value to the type of `definition`.

    Returns
    -------
    Any
        The coerced value, or None if it is empty, cannot be converted,
        or is not one of the definition's allowed values.
    """
    if is_null(value):
        return None

    kind = definition.type
    if kind == "number":
        num = safe_to_float(value)
        if np.isnan(num):
            return None
        return int(num) if num.is_integer() else num

    if kind == "boolean":
        if isinstance(value, bool):
            return value
        s = str(value).strip().lower()
        if s in _TRUE:
            return True
        if s in _FALSE:
            return False
        return None

    if kind == "array":
        items = parse_list_value(value) if is_list_like_cell(value) else [str(value).strip()]
        if definition.allowed_values:
            items = [canonical_allowed_value(i, definition.allowed_values) for i in items]
            items = [i for i in items if i is not None]
        return items or None

    return canonical_allowed_value(value, definition.allowed_values)


# ============================================================
#   Table → ProductVariant records
# ============================================================

def _resolve_field_columns(df: pd.DataFrame) -> Dict[str, str]:
    lowered = {str(c).strip().lower(): c for c in df.columns}
    resolved: Dict[str, str] = {}
    for field_name, candidates in _FIELD_COLUMNS.items():
        for cand in candidates:
            if cand in lowered:
                resolved[field_name] = lowered[cand]
                break
    return resolved


def products_from_frame(df: pd.DataFrame) -> List[ProductVariant]:
    """
    Turn an uploaded listings table into ProductVariant records.

    Recognised columns become the id / name / description / category
    fields; every other non-empty cell becomes an attribute, with numeric
    strings converted to numbers. Rows without an id column get their
    1-based row position as id.

    Raises
    ------
    ValueError
        If the table has no recognisable name column.
    """
    cols = _resolve_field_columns(df)
    if "name" not in cols:
        raise ValueError("Listings table needs a name column (name, product_name or title)")

    used = set(cols.values())
    attr_cols = [c for c in df.columns if c not in used]

    def cell(row: Dict[str, Any], field_name: str) -> Optional[str]:
        if field_name not in cols or is_null(row[cols[field_name]]):
            return None
        return str(row[cols[field_name]]).strip()

    products: List[ProductVariant] = []
    for pos, row in enumerate(df.to_dict(orient="records"), start=1):
        attrs: Dict[str, Any] = {}
        for c in attr_cols:
            value = row[c]
            if isinstance(value, dict):
                # Nested "attributes" object from JSON listings
                attrs.update({str(k): to_number_if_numeric_string(v) for k, v in value.items() if not is_null(v)})
            elif not is_null(value):
                attrs[str(c)] = to_number_if_numeric_string(value)
        products.append(
            ProductVariant(
                id=cell(row, "id") or str(pos),
                name=cell(row, "name") or "",
                description=cell(row, "description"),
                category=cell(row, "category"),
                attributes=attrs,
            )
        )
    return products
