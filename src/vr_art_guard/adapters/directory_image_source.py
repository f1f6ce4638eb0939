"""Image source reading renders that the host drops into a directory."""

import asyncio
from dataclasses import dataclass
from pathlib import Path

from vr_art_guard.domain.layers import Direction, MapType, layer_id
from vr_art_guard.services.capture import CaptureBuffer, ImageSource


@dataclass
class DirectoryImageSource(ImageSource):
    """Reads ``<root>/<Direction>_<MapType>.png`` for each requested layer."""

    root: Path
    suffix: str = ".png"

    def path_for(self, direction: Direction, map_type: MapType) -> Path:
        return self.root / f"{layer_id(direction, map_type)}{self.suffix}"

    async def capture(
        self, direction: Direction, map_type: MapType, buffer: CaptureBuffer
    ) -> bytes:
        """Load the render into ``buffer`` and return its bytes."""
        path = self.path_for(direction, map_type)
        data = await asyncio.to_thread(path.read_bytes)
        buffer.data[:] = data
        return bytes(buffer.data)
