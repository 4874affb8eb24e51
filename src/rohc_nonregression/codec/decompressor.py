import logging
from typing import Dict, Optional

from ..errors import CodecError
from ..interfaces import Decompressor
from ..models import CidMode
from . import packets
from .compressor import UncompressedCompressor
from .crc import crc8

logger = logging.getLogger(__name__)


class UncompressedDecompressor(Decompressor):
    """
    ROHC decompressor for the Uncompressed profile.

    The associated compressor is the one of the reverse stream: feedback
    found in front of received packets is delivered to it, and the
    acknowledgements this decompressor produces are piggy-backed by it.
    """

    def __init__(self, decomp_id: int, associated: Optional[UncompressedCompressor] = None):
        self.decomp_id = decomp_id
        self.associated = associated
        self.contexts: Dict[int, int] = {}
        self.stats = {
            "packets": 0,
            "ir_packets": 0,
            "normal_packets": 0,
            "failures": 0,
            "feedback_received": 0,
            "feedback_sent": 0,
            "crc_failures": 0,
        }

    def _parse_feedback(self, data: bytes, pos: int) -> int:
        while pos < len(data) and packets.is_feedback(data[pos]):
            feedback, pos = packets.unwrap_feedback(data, pos)
            self.stats["feedback_received"] += 1
            if self.associated is not None:
                self.associated.deliver_feedback(feedback)
        return pos

    def _acknowledge(self, cid: int, cid_mode: CidMode):
        if self.associated is None:
            return
        ack = packets.encode_feedback_data(cid, cid_mode.is_large, bytes([packets.FEEDBACK1_ACK]))
        self.associated.piggyback_feedback(ack)
        self.stats["feedback_sent"] += 1

    def _decode(self, data: bytes, cid_mode: CidMode) -> bytes:
        pos = self._parse_feedback(data, 0)
        while pos < len(data) and data[pos] == packets.PADDING:
            pos += 1
        if pos >= len(data):
            raise CodecError("no ROHC packet after feedback/padding")

        start = pos
        cid = 0
        if not cid_mode.is_large and packets.is_add_cid(data[pos]):
            cid = data[pos] & 0x0F
            pos += 1
            if pos >= len(data):
                raise CodecError("truncated packet after Add-CID")

        first = data[pos]
        pos += 1
        if cid_mode.is_large:
            cid, used = packets.decode_sdvl(data, pos)
            pos += used

        if first & packets.PACKET_IR_MASK == packets.PACKET_IR:
            if pos + 2 > len(data):
                raise CodecError("truncated IR header")
            profile = data[pos]
            if profile != packets.PROFILE_UNCOMPRESSED:
                raise CodecError(f"profile 0x{profile:02x} not supported")
            if crc8(data[start:pos + 1]) != data[pos + 1]:
                self.stats["crc_failures"] += 1
                raise CodecError(f"CRC failure on IR packet for CID {cid}")
            self.contexts[cid] = profile
            self.stats["ir_packets"] += 1
            self._acknowledge(cid, cid_mode)
            return data[pos + 2:]

        if first == packets.PACKET_IR_DYN or first & packets.PACKET_SEGMENT_MASK == packets.PACKET_SEGMENT:
            raise CodecError(f"packet type 0x{first:02x} not supported")

        if cid not in self.contexts:
            raise CodecError(f"Normal packet for CID {cid} without context")
        self.stats["normal_packets"] += 1
        return bytes([first]) + data[pos:]

    def decompress(self, data: bytes, cid_mode: CidMode) -> Optional[bytes]:
        self.stats["packets"] += 1
        try:
            packet = self._decode(bytes(data), cid_mode)
        except CodecError as e:
            self.stats["failures"] += 1
            logger.error("decomp %d: %s", self.decomp_id, e)
            return None
        if not packet:
            self.stats["failures"] += 1
            logger.error("decomp %d: empty IP packet", self.decomp_id)
            return None
        return packet

    def statistics(self) -> str:
        s = self.stats
        return "\n".join([
            f"decompressor {self.decomp_id}:",
            f"  contexts: {len(self.contexts)}",
            f"  packets: {s['packets']} (IR: {s['ir_packets']}, Normal: {s['normal_packets']}, "
            f"failed: {s['failures']}, CRC failures: {s['crc_failures']})",
            f"  feedback received/sent: {s['feedback_received']}/{s['feedback_sent']}",
        ])

    def close(self) -> None:
        self.contexts.clear()
        self.associated = None
