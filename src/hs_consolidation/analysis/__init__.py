# analysis/__init__.py

"""
Tabular summaries of consolidation results for review and export.
"""

from .result_summary import (
    attribute_coverage_by_category,
    confidence_by_source,
    results_to_frame,
)

__all__ = [
    "attribute_coverage_by_category",
    "confidence_by_source",
    "results_to_frame",
]
