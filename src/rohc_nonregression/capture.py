"""
Capture file access through scapy.

PcapFrameSource streams frames from a pcap or pcapng file without loading it
in memory (RawPcapReader), PcapFrameSink writes frames to a pcap file
(RawPcapWriter). Both keep the capture's link type untouched.
"""

import logging
import struct
from typing import Optional, Tuple

from scapy.error import Scapy_Exception
from scapy.utils import RawPcapReader, RawPcapWriter

from .errors import StartupError
from .framing import header_length
from .interfaces import FrameSink, FrameSource
from .models import Frame

logger = logging.getLogger(__name__)

PCAP_MAGIC_BE = b'\xa1\xb2\xc3\xd4'
PCAP_MAGIC_LE = b'\xd4\xc3\xb2\xa1'


def get_pcap_dlt(pcap_path: str) -> Optional[int]:
    """Read the data link type from a classic pcap global header."""
    try:
        with open(pcap_path, 'rb') as f:
            header = f.read(24)
    except OSError:
        return None
    if len(header) < 24:
        return None
    magic = header[:4]
    if magic == PCAP_MAGIC_BE:
        return struct.unpack('>I', header[20:24])[0]
    if magic == PCAP_MAGIC_LE:
        return struct.unpack('<I', header[20:24])[0]
    return None


def _timestamp(metadata, nano: bool) -> Tuple[int, int]:
    sec = getattr(metadata, 'sec', None)
    if sec is not None:
        usec = metadata.usec // 1000 if nano else metadata.usec
        return sec, usec
    # pcapng: 64-bit tick counter at tsresol ticks per second
    ticks = (getattr(metadata, 'tshigh', 0) << 32) + getattr(metadata, 'tslow', 0)
    tsresol = getattr(metadata, 'tsresol', 1000000) or 1000000
    sec, rest = divmod(ticks, tsresol)
    return int(sec), int(rest * 1000000 // tsresol)


class PcapFrameSource(FrameSource):
    def __init__(self, path: str, where: str = "source"):
        self.path = path
        self.where = where
        try:
            self._reader = RawPcapReader(path)
        except (OSError, Scapy_Exception) as e:
            raise StartupError(f"failed to open the {where} pcap file: {e}") from e

        self._nano = bool(getattr(self._reader, 'nano', False))
        self._peeked = None
        link_type = getattr(self._reader, 'linktype', None)
        if link_type is None:
            # pcapng announces the link type per interface, use the first packet's
            self._peeked = self._read()
            if self._peeked is not None:
                link_type = self._peeked.link_type
            else:
                link_type = get_pcap_dlt(path) or 1
        self._link_type = link_type

        try:
            header_length(link_type, where)
        except StartupError:
            self.close()
            raise
        logger.debug("opened %s capture %s (link type %d)", where, path, link_type)

    @property
    def link_type(self) -> int:
        return self._link_type

    def _read(self) -> Optional[Frame]:
        try:
            data, metadata = next(self._reader)
        except StopIteration:
            return None
        # a record cut short by the end of the file holds fewer bytes than
        # its header announces
        captured = min(getattr(metadata, 'caplen', len(data)), len(data))
        link_type = getattr(metadata, 'linktype', None)
        if link_type is None:
            link_type = self._link_type
        return Frame(
            link_type,
            data,
            declared_length=metadata.wirelen,
            captured_length=captured,
            timestamp=_timestamp(metadata, self._nano),
        )

    def next_frame(self) -> Optional[Frame]:
        if self._peeked is not None:
            frame, self._peeked = self._peeked, None
            return frame
        return self._read()

    def close(self) -> None:
        if self._reader is not None:
            self._reader.close()
            self._reader = None


class PcapFrameSink(FrameSink):
    def __init__(self, path: str, link_type: int):
        self.path = path
        self.link_type = link_type
        try:
            self._writer = RawPcapWriter(path, linktype=link_type, sync=True)
            # the global header goes out now, a run without packets still
            # leaves a readable capture
            self._writer.write_header(None)
        except (OSError, Scapy_Exception) as e:
            raise StartupError(f"failed to open dump file: {e}") from e

    def write(self, frame: Frame) -> None:
        sec, usec = frame.timestamp
        self._writer.write_packet(
            frame.data,
            sec=sec,
            usec=usec,
            caplen=frame.captured_length,
            wirelen=frame.declared_length,
        )

    def close(self) -> None:
        if self._writer is not None:
            self._writer.close()
            self._writer = None
