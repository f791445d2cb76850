"""Tagged results returned by service operations."""

import functools
import sqlite3
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, TypeVar, Union

from common.logging_config import get_logger
from filesync.exceptions import ErrorKind, FileSyncException, StorageIOError

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    error: FileSyncException

    @property
    def is_ok(self) -> bool:
        return False

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind

    @property
    def message(self) -> str:
        return str(self.error)

    def unwrap(self) -> Any:
        raise self.error


Result = Union[Ok[T], Err]


def as_result(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[Result]]:
    """
    Wrap an async service method so it returns Ok/Err instead of raising.

    FileSyncException subclasses become Err as they are. OSError and
    sqlite3.Error become a StorageIOError with a generic message so that no
    filesystem path or SQL reaches the caller.
    """

    @functools.wraps(func)
    async def wrapper(*args, **kwargs) -> Result:
        try:
            return Ok(await func(*args, **kwargs))
        except FileSyncException as e:
            return Err(e)
        except OSError as e:
            logger.error(f"Storage I/O failure in {func.__name__}: {e}", exc_info=True)
            return Err(StorageIOError("Storage read/write failed"))
        except sqlite3.Error as e:
            logger.error(f"Metadata store failure in {func.__name__}: {e}", exc_info=True)
            return Err(StorageIOError("Metadata store operation failed"))

    return wrapper
