"""Sync layer.

Rotation, correlation, output and the cycle that ties them to the
ingestion and state layers.
"""

__all__: list[str] = []
