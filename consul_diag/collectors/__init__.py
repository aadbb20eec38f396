"""Collectors for Consul diagnostics."""

from .pprof import ProfileCollector, ProfileRequest, ValidationResult, CaptureResult
from .proxy import (
    ProxyDiagnosticsCollector,
    ProxyDiagnosticsBundle,
    ProxyRecord,
    GatherResult,
    iter_proxy_records
)

__all__ = [
    'ProfileCollector',
    'ProfileRequest',
    'ValidationResult',
    'CaptureResult',
    'ProxyDiagnosticsCollector',
    'ProxyDiagnosticsBundle',
    'ProxyRecord',
    'GatherResult',
    'iter_proxy_records'
]
