# models.py

"""
Record types shared by the consolidation engine and the HS matcher.

Catalog-facing records (products, categories, HS nodes) are pydantic
models so malformed data is rejected when it is loaded rather than
when it is used. Results produced by a run are plain dataclasses.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================
#   Enums
# ============================================================

class ResultSource(str, Enum):
    heuristic = "heuristic"
    llm = "llm"
    default = "default"
    fallback = "fallback"

    def __str__(self):
        return self.value


class HSLevel(str, Enum):
    chapter = "chapter"
    heading = "heading"
    subheading = "subheading"

    def __str__(self):
        return self.value


_LEVEL_BY_LENGTH = {2: HSLevel.chapter, 4: HSLevel.heading, 6: HSLevel.subheading}


def normalize_hs_code(code: str) -> str:
    """Strip dots and whitespace from an HS code ("2204.21" -> "220421")."""
    return str(code).replace(".", "").replace(" ", "").strip()


def hs_level_for(code: str) -> Optional[HSLevel]:
    return _LEVEL_BY_LENGTH.get(len(normalize_hs_code(code)))


# ============================================================
#   Input records
# ============================================================

class ProductVariant(BaseModel):
    """A single raw product listing. Never mutated by the engine."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    attributes: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v: Any) -> str:
        return str(v).strip() if v is not None else v


# ============================================================
#   Catalog records
# ============================================================

class AttributeDefinition(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    display_name: Optional[str] = None
    type: Literal["string", "number", "boolean", "array"] = "string"
    required: bool = False
    allowed_values: Optional[List[str]] = None


class ProductCategory(BaseModel):
    """A canonical category from the category catalog."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: str = ""
    examples: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    alternate_names: List[str] = Field(default_factory=list)
    hs_code_hints: List[str] = Field(default_factory=list)
    priority: int = 100
    attribute_definitions: List[AttributeDefinition] = Field(default_factory=list)

    @field_validator("hs_code_hints")
    @classmethod
    def _check_hints(cls, v: List[str]) -> List[str]:
        out = []
        for hint in v:
            code = normalize_hs_code(hint)
            if len(code) != 2 or not code.isdigit():
                raise ValueError(f"HS code hint must be a 2-digit chapter, got {hint!r}")
            out.append(code)
        return out

    def attribute(self, name: str) -> Optional[AttributeDefinition]:
        for definition in self.attribute_definitions:
            if definition.name == name:
                return definition
        return None

    def profile_text(self) -> str:
        """Text the heuristic matcher scores product text against."""
        parts = [self.name, self.description, *self.keywords, *self.examples, *self.alternate_names]
        return " ".join(p for p in parts if p)


class HSCodeNode(BaseModel):
    """One chapter, heading or subheading of the HS catalog."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    code: str
    name: str = ""
    description: str = Field(min_length=1)
    examples: List[str] = Field(default_factory=list)

    @field_validator("code", mode="before")
    @classmethod
    def _check_code(cls, v: Any) -> str:
        code = normalize_hs_code(v)
        if not code.isdigit() or len(code) not in _LEVEL_BY_LENGTH:
            raise ValueError(f"HS code must have 2, 4 or 6 digits, got {v!r}")
        return code

    @property
    def level(self) -> HSLevel:
        return _LEVEL_BY_LENGTH[len(self.code)]

    @property
    def parent(self) -> Optional[str]:
        return self.code[:-2] if len(self.code) > 2 else None

    @property
    def chapter(self) -> str:
        return self.code[:2]

    def profile_text(self) -> str:
        return " ".join(p for p in [self.name, self.description, *self.examples] if p)


class HSCodeRequest(BaseModel):
    category: str = Field(min_length=1)
    name: Optional[str] = None
    description: Optional[str] = None


# ============================================================
#   Run outputs
# ============================================================

@dataclass
class CategoryResult:
    category: ProductCategory
    variants: List[ProductVariant]
    confidence: float
    attributes: Dict[str, Any] = field(default_factory=dict)
    source: ResultSource = ResultSource.heuristic
    label: str = ""

    @property
    def fallback_used(self) -> bool:
        return self.source == ResultSource.fallback

    @property
    def item_count(self) -> int:
        return len(self.variants)

    @property
    def variant_ids(self) -> List[str]:
        return [v.id for v in self.variants]


@dataclass
class HSCodeSuggestion:
    code: str
    description: str
    level: HSLevel
    confidence: float
    children: List["HSCodeSuggestion"] = field(default_factory=list)
    examples: List[str] = field(default_factory=list)
    parent: Optional[str] = None

    @property
    def child_codes(self) -> List[str]:
        return [c.code for c in self.children]
