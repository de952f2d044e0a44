"""Query execution core: transport, orchestration, decoding and rendering."""

__all__ = []
