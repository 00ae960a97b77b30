"""Ingestion layer.

Adapters that fetch (snapshot) or receive (change feed) parking rows and
turn them into render-ready features for the state store.
"""

__all__: list[str] = []
