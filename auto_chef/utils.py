import asyncio
from typing import Optional


async def pause(seconds: float, stop: Optional[asyncio.Event] = None) -> bool:
    """Sleep for ``seconds``; return True early if ``stop`` fires first."""
    if stop is None:
        await asyncio.sleep(max(0.0, seconds))
        return False
    if stop.is_set():
        return True
    try:
        await asyncio.wait_for(stop.wait(), timeout=max(0.0, seconds))
    except asyncio.TimeoutError:
        return False
    return True


def format_time(seconds: float) -> str:
    minutes = int(seconds // 60)
    remaining = int(seconds % 60)
    secs = f"{remaining} second{'s' if remaining != 1 else ''}"
    if minutes > 0:
        return f"{minutes} minute{'s' if minutes != 1 else ''} {secs}"
    return secs
