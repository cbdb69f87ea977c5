"""
Kyverno Webhook Manager - lifecycle management for admission webhook registrations.

This package keeps the five admission webhook configurations of the policy
engine in sync with the cluster:
- Readiness-gated registration of all webhook configurations
- Concurrent, idempotent teardown
- Dynamic namespace-selector updates driven by the init ConfigMap
- Liveness-gated cleanup on shutdown
"""

__version__ = "0.1.0"
