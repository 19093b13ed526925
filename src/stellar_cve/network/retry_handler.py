"""
STELLAR CVE - Network - Retry Handler

Gestion des retries avec backoff exponentiel.

Invariant:
    GATE_006: Convergence bornée par backoff exponentiel
"""

import asyncio
import inspect
from typing import Any, Callable, Dict, Optional

from .interfaces import IRetryHandler, RetryConfig, RetryResult


class RetryHandler(IRetryHandler):
    """
    Retries avec backoff exponentiel.

    Seules les exceptions de retryable_exceptions sont réessayées;
    toute autre exception termine immédiatement en échec.
    """

    def __init__(self, default_config: Optional[RetryConfig] = None) -> None:
        self._default_config = default_config or RetryConfig()
        self._retry_stats: Dict[str, int] = {
            "total_retries": 0,
            "successful_retries": 0,
            "failed_retries": 0,
        }

    async def execute_with_retry(
        self,
        func: Callable[..., Any],
        *args: Any,
        config: Optional[RetryConfig] = None,
        **kwargs: Any,
    ) -> RetryResult:
        """
        Backoff: delay = min(initial * (base ^ attempt), max_delay)

        Args:
            func: Fonction à exécuter (sync ou async)
            config: Configuration retry optionnelle
        """
        retry_config = config or self._default_config
        last_error: Optional[Exception] = None
        total_delay: float = 0.0

        for attempt in range(retry_config.max_attempts):
            try:
                result = func(*args, **kwargs)
                if inspect.isawaitable(result):
                    result = await result
            except Exception as e:
                last_error = e
                self._retry_stats["total_retries"] += 1

                if not self.is_retryable(e, retry_config):
                    return RetryResult(
                        success=False,
                        result=None,
                        attempts=attempt + 1,
                        total_delay=total_delay,
                        last_error=e,
                    )

                if attempt < retry_config.max_attempts - 1:
                    delay = self.calculate_delay(attempt, retry_config)
                    total_delay += delay
                    await asyncio.sleep(delay)
                continue

            if attempt > 0:
                self._retry_stats["successful_retries"] += 1
            return RetryResult(
                success=True,
                result=result,
                attempts=attempt + 1,
                total_delay=total_delay,
                last_error=None,
            )

        self._retry_stats["failed_retries"] += 1
        return RetryResult(
            success=False,
            result=None,
            attempts=retry_config.max_attempts,
            total_delay=total_delay,
            last_error=last_error,
        )

    def calculate_delay(self, attempt: int, config: RetryConfig) -> float:
        delay = config.initial_delay * (config.exponential_base**attempt)
        return min(delay, config.max_delay)

    def is_retryable(self, error: Exception, config: RetryConfig) -> bool:
        return isinstance(error, config.retryable_exceptions)

    def get_retry_stats(self) -> Dict[str, int]:
        return dict(self._retry_stats)
