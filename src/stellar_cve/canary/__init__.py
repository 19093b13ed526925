"""
STELLAR CVE - Canary

Invariants couverts:
- CANARY_001-006: États, timeout, seuil inclusif, pas de retry
"""

from .interfaces import (
    CanaryTestStatus,
    TestRunReport,
    CanaryResult,
    ICanaryDeployer,
    ITestExecutor,
    ICanaryTestRunner,
)
from .canary_runner import CanaryTestRunner

__all__ = [
    "CanaryTestStatus",
    "TestRunReport",
    "CanaryResult",
    "ICanaryDeployer",
    "ITestExecutor",
    "ICanaryTestRunner",
    "CanaryTestRunner",
]
