"""
Утилиты для работы с таймаутами.

asyncio.wait_for() кидает asyncio.TimeoutError без деталей,
тут мы оборачиваем его с нормальным сообщением.
"""
import asyncio
from typing import TypeVar, Awaitable

T = TypeVar("T")


async def with_timeout(
    aw: Awaitable[T],
    timeout: float,
    operation: str = ""
) -> T:
    """
    Обёртка над wait_for с понятной ошибкой.

    Вместо голого TimeoutError получаем:
    "Timeout during reading request after 15.0s"
    """
    try:
        return await asyncio.wait_for(aw, timeout=timeout)
    except asyncio.TimeoutError:
        raise TimeoutError(f"Timeout during {operation} after {timeout}s")
