"""
Frame source contract.

A frame source delivers FrameData at sensor rate, with the resolution and
pixel format fixed when it is opened. The capture thread is its only reader.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional, Tuple

from coin_counter.models.frame import DEFAULT_PIXEL_FORMAT, FrameData


@dataclass
class ObservationConfig:
    """
    Settings shared by every frame source.

    Attributes:
        source_id: Name used in logs and on each FrameData.
        resolution: Requested (width, height); None keeps the device default.
        fps: Requested frame rate; None keeps the device default.
        pixel_format: "bgr24", "rgb24" or "gray8".
        metadata: Backend-specific extras.
    """
    source_id: str = "default"
    resolution: Optional[Tuple[int, int]] = None
    fps: Optional[int] = None
    pixel_format: str = DEFAULT_PIXEL_FORMAT
    metadata: Dict[str, Any] = field(default_factory=dict)


class ObservationSource(ABC):
    """
    A camera, stream or file that produces frames for the coin counter.

    Subclasses implement open/read/close. ``read`` returning None is a
    failed or missing frame; the engine decides when to give up.
    """

    def __init__(self, config: ObservationConfig):
        self._config = config
        self._is_open = False
        self._frame_index = 0

    @property
    def source_id(self) -> str:
        return self._config.source_id

    @property
    def pixel_format(self) -> str:
        return self._config.pixel_format

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def frame_index(self) -> int:
        """Frames delivered since open()."""
        return self._frame_index

    @abstractmethod
    def open(self) -> None:
        """
        Acquire the device. A source that cannot be opened is fatal at startup.

        Raises:
            RuntimeError: If the source cannot be opened.
        """

    @abstractmethod
    def read(self) -> Optional[FrameData]:
        """Next frame, or None at end of file or on a capture error."""

    @abstractmethod
    def close(self) -> None:
        """Release the device. Must tolerate repeated calls."""

    def __enter__(self) -> "ObservationSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[FrameData]:
        if not self._is_open:
            raise RuntimeError("Source must be open before iterating")

        while True:
            frame_data = self.read()
            if frame_data is None:
                break
            yield frame_data
