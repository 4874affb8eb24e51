from abc import ABC, abstractmethod
from typing import Iterator, Optional
from .models import CidMode, Frame


class Compressor(ABC):
    @abstractmethod
    def compress(self, payload: bytes) -> Optional[bytes]:
        """Return the compressed packet, or None when compression failed."""

    @abstractmethod
    def set_cid_mode(self, mode: CidMode) -> None:
        pass

    @abstractmethod
    def statistics(self) -> str:
        pass

    def close(self) -> None:
        pass


class Decompressor(ABC):
    @abstractmethod
    def decompress(self, data: bytes, cid_mode: CidMode) -> Optional[bytes]:
        """Return the decompressed packet, or None when decompression failed."""

    @abstractmethod
    def statistics(self) -> str:
        pass

    def close(self) -> None:
        pass


class FrameSource(ABC):
    """Finite, ordered, non-restartable sequence of frames."""

    @property
    @abstractmethod
    def link_type(self) -> int:
        pass

    @abstractmethod
    def next_frame(self) -> Optional[Frame]:
        """Return the next frame, or None at the end of the stream."""

    def __iter__(self) -> Iterator[Frame]:
        while True:
            frame = self.next_frame()
            if frame is None:
                return
            yield frame

    def close(self) -> None:
        pass


class FrameSink(ABC):
    @abstractmethod
    def write(self, frame: Frame) -> None:
        pass

    def close(self) -> None:
        pass
