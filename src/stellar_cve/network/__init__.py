"""
STELLAR CVE - Network

Retry avec backoff exponentiel (GATE_006).
"""

from .interfaces import IRetryHandler, RetryConfig, RetryResult
from .retry_handler import RetryHandler

__all__ = [
    "IRetryHandler",
    "RetryConfig",
    "RetryResult",
    "RetryHandler",
]
