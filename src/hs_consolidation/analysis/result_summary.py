# analysis/result_summary.py

import pandas as pd

from ..models import CategoryResult


# ------------------------------------------------------------
# Flatten results into a per-variant table
# ------------------------------------------------------------
def results_to_frame(results: list[CategoryResult]) -> pd.DataFrame:
    """
    One row per product variant:

        product_id, product_name, category_id, category_name,
        label, source, fallback_used, confidence, group_size

    plus one column per extracted attribute (prefixed "attr_").
    """
    rows = []
    for group_idx, r in enumerate(results):
        attrs = {f"attr_{k}": (", ".join(v) if isinstance(v, list) else v) for k, v in r.attributes.items()}
        for v in r.variants:
            rows.append(
                {
                    "group": group_idx,
                    "product_id": v.id,
                    "product_name": v.name,
                    "category_id": r.category.id,
                    "category_name": r.category.name,
                    "label": r.label,
                    "source": str(r.source),
                    "fallback_used": r.fallback_used,
                    "confidence": round(r.confidence, 4),
                    "group_size": r.item_count,
                    **attrs,
                }
            )
    columns = [
        "group", "product_id", "product_name", "category_id", "category_name",
        "label", "source", "fallback_used", "confidence", "group_size",
    ]
    df = pd.DataFrame(rows)
    if df.empty:
        return pd.DataFrame(columns=columns)
    return df


# ------------------------------------------------------------
# Aggregate views
# ------------------------------------------------------------
def confidence_by_source(results: list[CategoryResult]) -> pd.DataFrame:
    """
    Returns a DataFrame where:
        index = result source (heuristic / llm / default / fallback)
        columns = groups, variants, mean_confidence, min_confidence
    """
    df = results_to_frame(results)
    if df.empty:
        return pd.DataFrame(columns=["groups", "variants", "mean_confidence", "min_confidence"])
    out = df.groupby("source").agg(
        groups=("group", "nunique"),
        variants=("product_id", "count"),
        mean_confidence=("confidence", "mean"),
        min_confidence=("confidence", "min"),
    )
    return out.round(3)


def attribute_coverage_by_category(results: list[CategoryResult]) -> pd.DataFrame:
    """
    Returns a DataFrame where:
        index = category names
        columns = attribute names
        values = % of the category's variants whose group has a value
    """
    df = results_to_frame(results)
    attr_cols = [c for c in df.columns if c.startswith("attr_")]
    if df.empty or not attr_cols:
        return pd.DataFrame()
    non_null = df[attr_cols].notna().astype(int)
    coverage = non_null.groupby(df["category_name"]).mean() * 100.0
    coverage.columns = [c[len("attr_"):] for c in attr_cols]
    coverage.index.name = "category_name"
    return coverage.round(1)
