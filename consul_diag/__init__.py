"""
Consul Service Mesh Diagnostics

Operator tools to gather diagnostic data from a running Consul deployment:
- consul-pprof: Go runtime profiles (heap, CPU, trace, goroutine) from an agent
- consul-k8s-gather: per-proxy diagnostics from a Kubernetes mesh via consul-k8s
"""

__version__ = "1.0.0"

from .common import CaptureJob, GatherJob, ConsulAgentClient, ConsulK8sCLI
from .collectors import ProfileCollector, ProxyDiagnosticsCollector

__all__ = [
    'CaptureJob',
    'GatherJob',
    'ConsulAgentClient',
    'ConsulK8sCLI',
    'ProfileCollector',
    'ProxyDiagnosticsCollector'
]
