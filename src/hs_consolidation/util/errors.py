# util/errors.py


class ConsolidationError(Exception):
    """Base class for every error raised by the consolidation engine."""


class InputValidationError(ConsolidationError, ValueError):
    # Flow: input-contract violations are the only errors surfaced to callers.
    pass


class EmptyBatchError(InputValidationError):
    def __init__(self, message: str = "Cannot consolidate an empty product batch") -> None:
        super().__init__(message)


class DuplicateProductError(InputValidationError):
    def __init__(self, duplicate_ids) -> None:
        self.duplicate_ids = sorted(duplicate_ids)
        super().__init__(f"Duplicate product ids in batch: {', '.join(self.duplicate_ids)}")


class DimensionMismatchError(InputValidationError):
    pass


class CatalogError(ConsolidationError):
    """Category or HS catalog data failed validation at load time."""


class EmbeddingGatewayError(ConsolidationError):
    """No embedding could be retrieved for any product in the batch."""


class LLMResponseError(ConsolidationError):
    """The LLM collaborator replied with something outside the expected schema."""
