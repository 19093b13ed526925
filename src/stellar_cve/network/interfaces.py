"""
STELLAR CVE - Network - Interfaces

Retry avec backoff exponentiel pour les attentes bornées
(convergence de santé pendant l'élargissement et le rollback).

Invariants:
    GATE_006: Convergence bornée par backoff exponentiel
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from ..core.errors import TransientInfraError


@dataclass
class RetryConfig:
    """
    Configuration des retries.

    max_attempts borne le nombre total d'appels (premier compris).
    """

    max_attempts: int = 5
    initial_delay: float = 2.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    retryable_exceptions: tuple = field(
        default_factory=lambda: (TransientInfraError, ConnectionError, TimeoutError)
    )


@dataclass
class RetryResult:
    """Résultat d'une opération avec retry."""

    success: bool
    result: Optional[Any]
    attempts: int
    total_delay: float
    last_error: Optional[Exception]


class IRetryHandler(ABC):
    """Interface gestion retries."""

    @abstractmethod
    async def execute_with_retry(
        self,
        func: Callable[..., Any],
        *args: Any,
        config: Optional[RetryConfig] = None,
        **kwargs: Any,
    ) -> RetryResult:
        """
        Exécute func avec backoff exponentiel.

        Returns:
            RetryResult avec succès/échec et détails
        """
        pass

    @abstractmethod
    def calculate_delay(self, attempt: int, config: RetryConfig) -> float:
        """Délai avant la tentative attempt + 1 (0-indexed)."""
        pass
