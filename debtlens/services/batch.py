import asyncio
from typing import Awaitable, Callable, List, Sequence, TypeVar, Union

T = TypeVar("T")
R = TypeVar("R")


async def run_bounded(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    concurrency: int,
) -> List[Union[R, BaseException]]:
    """
    Run worker(item) for every item with at most `concurrency` in flight.

    Returns once every item has settled. A failing item does not cancel its
    siblings; its exception takes its slot in the returned list, which keeps
    input order. Callers decide whether to re-raise.
    """
    if concurrency < 1:
        raise ValueError("concurrency must be at least 1")

    semaphore = asyncio.Semaphore(concurrency)

    async def _run(item: T) -> R:
        async with semaphore:
            return await worker(item)

    return await asyncio.gather(*(_run(item) for item in items), return_exceptions=True)
