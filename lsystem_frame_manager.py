import asyncio
from typing import List, Optional

DEFAULT_EVERY = 50


class LSystemFrameManager:
    """Keeps a thinned set of JPEG frames from one streamed render.

    `begin` labels the render the frames belong to (preset, iterations, ...).
    Every `every`-th offered frame is kept, and the final frame always is.
    Snapshots are only handed out once the render has finished, so a reader
    never sees a half-captured sequence.
    """

    def __init__(self, every: int = DEFAULT_EVERY):
        if every < 1:
            raise ValueError(f"every must be >= 1, got {every}")
        self.every = every
        self._lock = asyncio.Lock()
        self._reset(None)

    def _reset(self, render: Optional[dict]):
        self._render = render
        self._frames: List[bytes] = []
        self._offered = 0
        self._finished = False

    async def begin(self, render: Optional[dict] = None):
        async with self._lock:
            self._reset(dict(render) if render else None)

    async def offer(self, frame: bytes) -> bool:
        """Offer an intermediate frame; True when it was kept."""
        async with self._lock:
            keep = self._offered % self.every == 0
            self._offered += 1
            if keep:
                self._frames.append(frame)
            return keep

    async def finish(self, frame: bytes):
        async with self._lock:
            self._frames.append(frame)
            self._finished = True

    async def snapshot(self) -> Optional[dict]:
        """{'render': label, 'frames': [...], 'offered': n} once finished, else None."""
        async with self._lock:
            if not self._finished:
                return None
            return {"render": self._render, "frames": list(self._frames), "offered": self._offered}
