import asyncio
import functools
from typing import Awaitable, Callable, Dict, Optional, Tuple, Type, TypeVar, Union

from loguru import logger

from ..exceptions import (
    MFuseException,
    ProviderException,
    ConfigurationException,
    ValidationException,
)

T = TypeVar('T')
ExceptionTypes = Union[Type[BaseException], Tuple[Type[BaseException], ...]]

__all__ = [
    "handle_exceptions",
    "log_exceptions",
    "convert_exceptions",
    "ErrorHandler",
    "MFuseException",
    "ProviderException",
    "ConfigurationException",
    "ValidationException",
]


def _matches(e: BaseException, exceptions: ExceptionTypes) -> bool:
    # convert_exceptions keeps the foreign error as __cause__
    return isinstance(e, exceptions) or isinstance(e.__cause__, exceptions)


def handle_exceptions(
    retries: int = 3,
    exceptions: ExceptionTypes = Exception,
    backoff_factor: float = 2.0,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
):
    """
    Retry an async provider call with exponential backoff.

    An error matches when it, or the error it was converted from, is one of
    ``exceptions``. Anything else propagates on the first attempt. The last
    matching error is re-raised once ``retries`` attempts are used up.

    Args:
        retries: Total number of attempts
        exceptions: Exception types worth retrying
        backoff_factor: Growth of the delay between attempts
        base_delay: Delay after the first failed attempt, in seconds
        max_delay: Upper bound for a single delay, in seconds
    """
    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            for attempt in range(1, retries + 1):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if not _matches(e, exceptions) or attempt == retries:
                        if attempt > 1:
                            logger.error(f"{func.__qualname__} gave up after {attempt} attempts: {e}")
                        raise
                    delay = min(base_delay * backoff_factor ** (attempt - 1), max_delay)
                    logger.warning(f"{func.__qualname__} attempt {attempt}/{retries} failed: {e}. "
                                   f"Retrying in {delay:.1f}s")
                    await asyncio.sleep(delay)

        return wrapper

    return decorator


def log_exceptions(
    log_level: str = "ERROR",
    include_traceback: bool = True,
    custom_message: Optional[str] = None
):
    """Log an exception escaping an async call, then re-raise it."""
    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                message = custom_message or f"Exception in {func.__qualname__}"
                logger.opt(exception=include_traceback).log(log_level, f"{message}: {ErrorHandler.describe(e)}")
                raise

        return wrapper

    return decorator


def convert_exceptions(exception_map: Dict[Type[Exception], Type[MFuseException]]):
    """
    Re-raise foreign exceptions as mfuse exceptions.

    The first matching entry of ``exception_map`` wins. Errors that already
    derive from MFuseException pass through untouched.
    """
    def _convert(e: Exception) -> Optional[MFuseException]:
        if isinstance(e, MFuseException):
            return None
        for source_exc, target_exc in exception_map.items():
            if isinstance(e, source_exc):
                return target_exc(str(e) or type(e).__name__,
                                  details={"original_exception": type(e).__name__})
        return None

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                converted = _convert(e)
                if converted is None:
                    raise
                raise converted from e

        return wrapper

    return decorator


class ErrorHandler:
    """Centralized error handling utilities."""

    @staticmethod
    def describe(e: BaseException) -> str:
        """Short, log-friendly description of an exception."""
        message = str(e)
        return f"{type(e).__name__}: {message}" if message else type(e).__name__
