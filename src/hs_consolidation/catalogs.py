# catalogs.py

"""
Loading and validating the bundled (or caller-supplied) catalogs.

Both catalogs are JSON arrays of records. Every record is validated with
its pydantic model when loaded, so the rest of the package can rely on the
shapes without re-checking them.
"""

from __future__ import annotations
import json
import logging
from importlib import resources
from pathlib import Path
from typing import Any, Iterable, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from .models import HSCodeNode, ProductCategory
from .util.errors import CatalogError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

PathLike = Union[str, Path]


def _read_json(path: Optional[PathLike], bundled_name: str) -> Any:
    try:
        if path is None:
            raw = resources.files("hs_consolidation.data").joinpath(bundled_name).read_text(encoding="utf-8")
        else:
            raw = Path(path).read_text(encoding="utf-8")
        return json.loads(raw)
    except (OSError, json.JSONDecodeError) as e:
        raise CatalogError(f"Could not read catalog {path or bundled_name}: {e}") from e


def _validate_records(records: Iterable[Any], model: Type[M], what: str) -> List[M]:
    out: List[M] = []
    for i, rec in enumerate(records):
        try:
            out.append(model.model_validate(rec))
        except ValidationError as e:
            raise CatalogError(f"Invalid {what} record at index {i}: {e}") from e
    return out


def parse_categories(records: Iterable[Any]) -> List[ProductCategory]:
    categories = _validate_records(records, ProductCategory, "category")
    seen = set()
    for c in categories:
        if c.id in seen:
            raise CatalogError(f"Duplicate category id {c.id!r}")
        seen.add(c.id)
    return categories


def parse_hs_nodes(records: Iterable[Any]) -> List[HSCodeNode]:
    nodes = _validate_records(records, HSCodeNode, "HS code")
    codes = {n.code for n in nodes}
    if len(codes) != len(nodes):
        raise CatalogError("Duplicate HS codes in catalog")
    for n in nodes:
        if n.parent is not None and n.parent not in codes:
            raise CatalogError(f"HS code {n.code} has no parent {n.parent} in catalog")
    return nodes


def load_categories(path: Optional[PathLike] = None) -> List[ProductCategory]:
    """Load the category catalog (bundled default when `path` is None)."""
    categories = parse_categories(_read_json(path, "categories.json"))
    logger.info("catalog.categories.loaded n=%d source=%s", len(categories), path or "bundled")
    return categories


def load_hs_nodes(path: Optional[PathLike] = None) -> List[HSCodeNode]:
    """Load the HS chapter/heading/subheading catalog."""
    nodes = parse_hs_nodes(_read_json(path, "hs_codes.json"))
    logger.info("catalog.hs.loaded n=%d source=%s", len(nodes), path or "bundled")
    return nodes
