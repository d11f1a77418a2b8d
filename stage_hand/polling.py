import time
from typing import Awaitable, Callable


async def poll_until(
    page,
    predicate: Callable[[], Awaitable[bool]],
    timeout_ms: int,
    interval_ms: int,
) -> bool:
    """
    Re-run `predicate` until it returns True or `timeout_ms` elapses.
    Sleeps through page.wait between reads; always checks at least once.
    """
    deadline = time.monotonic() + timeout_ms / 1000
    while True:
        if await predicate():
            return True
        if time.monotonic() >= deadline:
            return False
        await page.wait(interval_ms)


def elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
