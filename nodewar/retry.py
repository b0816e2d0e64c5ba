import asyncio
import logging
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from nodewar.errors import TransientStoreError
from nodewar.load_secrets import retry_attempts, retry_backoff_seconds

T = TypeVar("T")


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    label: str,
    attempts: int = retry_attempts,
    backoff_seconds: float = retry_backoff_seconds,
    retry_on: Tuple[Type[Exception], ...] = (TransientStoreError,),
) -> T:
    """Run operation, re-attempting on retryable errors with exponential backoff.

    Args:
        operation (Callable): Zero-argument coroutine factory, called once per attempt
        label (str): Name used in log lines
        attempts (int): Total attempts including the first one
        retry_on (tuple): Exception types considered safe to retry

    Returns:
        The operation's result. The last error is re-raised once attempts run out.
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except retry_on as e:
            attempt += 1
            if attempt >= attempts:
                logging.error(f"{label} failed after {attempt} attempts: {e}")
                raise
            delay = backoff_seconds * (2 ** (attempt - 1))
            logging.warning(
                f"{label} retry due to {e} (attempt {attempt + 1}/{attempts}, backoff={delay:.2f}s)"
            )
            await asyncio.sleep(delay)
