from .attribute_values import (
    coerce_attribute_value,
    canonical_allowed_value,
    parse_list_value,
    products_from_frame,
    safe_to_float,
)
