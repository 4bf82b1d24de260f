"""Exception hierarchy for the categorization engine.

Engine code raises these; the API layer maps them to HTTP responses and the
CLI turns them into a non-zero exit code.
"""


class CategorizerError(Exception):
    """Base class for every error raised by the engine."""

    http_status: int = 500


class ConfigurationError(CategorizerError):
    """The engine cannot run with the current configuration or category set."""


class CatalogError(ConfigurationError):
    """The rule catalog file is missing, malformed or inconsistent."""


class StoreError(CategorizerError):
    """A read against the transaction store failed."""


class InitializationError(CategorizerError):
    """Building the catalogs from the store failed."""

    http_status = 503


class EngineNotInitializedError(CategorizerError):
    http_status = 503


class ScanError(CategorizerError):
    """Listing transactions for a bulk run failed."""


class UnknownCategoryError(CategorizerError, ValueError):
    http_status = 400

    def __init__(self, category_name: str):
        self.category_name = category_name
        super().__init__(f"Unknown category: {category_name}")
