"""Hand blocking SDK calls to a worker thread without starving the loop."""
import asyncio
import typing


class AsyncJolt:
    async def __aenter__(self) -> None:
        await asyncio.sleep(0)

    async def __aexit__(self, *args: typing.Any, **kwargs: typing.Any) -> None:
        await asyncio.sleep(0)


async def in_thread[T](
    func: typing.Callable[..., T], /, *args: typing.Any, **kwargs: typing.Any
) -> T:
    async with AsyncJolt():
        return await asyncio.to_thread(func, *args, **kwargs)
