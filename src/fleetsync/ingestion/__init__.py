"""Ingestion layer.

This package contains the adapters that pull feed pages from the telemetry
service and turn them into typed records and classified fetch results.
"""

__all__: list[str] = []
