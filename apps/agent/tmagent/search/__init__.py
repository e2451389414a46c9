"""Web search used to back replies the warehouse has no rows for."""

from .web import WebSearchService, format_search_results

__all__ = ["WebSearchService", "format_search_results"]
