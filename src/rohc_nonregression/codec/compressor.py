import logging
import struct
from collections import OrderedDict
from typing import Dict, List, Optional

from ..errors import CodecError
from ..interfaces import Compressor
from ..models import CidMode
from . import packets
from .crc import crc8

logger = logging.getLogger(__name__)

# IR packets sent before trusting the decompressor when no ACK came back
IR_REPETITIONS = 3
# a context sends an IR again after this many Normal packets
IR_REFRESH_INTERVAL = 1700

STATE_IR = "IR"
STATE_NORMAL = "Normal"


def flow_key(packet: bytes):
    """Flows share a context when they share version, addresses and protocol."""
    version = (packet[0] >> 4) & 0x0F if packet else 0
    if version == 4 and len(packet) >= 20:
        return (4, packet[12:16], packet[16:20], packet[9])
    if version == 6 and len(packet) >= 40:
        return (6, packet[8:24], packet[24:40], packet[6])
    return (version,)


class CompressionContext:
    def __init__(self, cid: int, key):
        self.cid = cid
        self.key = key
        self.state = STATE_IR
        self.ir_sent = 0
        self.since_refresh = 0
        self.acked = False

    def __repr__(self):
        return f"<CompressionContext cid={self.cid} state={self.state}>"


class UncompressedCompressor(Compressor):
    """
    ROHC compressor for the Uncompressed profile.

    Contexts start in the IR state and move to the Normal state after an
    acknowledgement from the remote decompressor, or optimistically after
    IR_REPETITIONS IR packets. Feedback queued with piggyback_feedback() is
    sent in front of the next compressed packet; feedback for this
    compressor is handed to deliver_feedback() by the decompressor of the
    reverse stream.
    """

    def __init__(self, comp_id: int, max_contexts: int = 16, cid_mode: CidMode = CidMode.SMALL):
        if max_contexts < 1:
            raise CodecError("at least one context is required")
        self.comp_id = comp_id
        self.max_contexts = max_contexts
        self.cid_mode = cid_mode
        self.contexts: "OrderedDict[tuple, CompressionContext]" = OrderedDict()
        self.by_cid: Dict[int, CompressionContext] = {}
        self.pending_feedback: List[bytes] = []
        self.stats = {
            "packets": 0,
            "ir_packets": 0,
            "normal_packets": 0,
            "failures": 0,
            "uncompressed_bytes": 0,
            "compressed_bytes": 0,
            "feedback_received": 0,
            "feedback_sent": 0,
            "contexts_created": 0,
            "contexts_reused": 0,
        }
        self.closed = False

    def set_cid_mode(self, mode: CidMode) -> None:
        self.cid_mode = mode

    @property
    def usable_contexts(self) -> int:
        if self.cid_mode.is_large:
            return min(self.max_contexts, packets.MAX_LARGE_CID + 1)
        return min(self.max_contexts, packets.MAX_SMALL_CID + 1)

    # --- context management ---

    def _context_for(self, packet: bytes) -> CompressionContext:
        key = flow_key(packet)
        ctx = self.contexts.get(key)
        if ctx is not None:
            self.contexts.move_to_end(key)
            return ctx

        if len(self.contexts) < self.usable_contexts:
            cid = len(self.contexts)
            self.stats["contexts_created"] += 1
        else:
            _, oldest = self.contexts.popitem(last=False)
            del self.by_cid[oldest.cid]
            cid = oldest.cid
            self.stats["contexts_reused"] += 1
            logger.debug("comp %d: context %d reused for a new flow", self.comp_id, cid)

        ctx = CompressionContext(cid, key)
        self.contexts[key] = ctx
        self.by_cid[cid] = ctx
        return ctx

    # --- feedback channel ---

    def piggyback_feedback(self, data: bytes) -> None:
        self.pending_feedback.append(bytes(data))

    def deliver_feedback(self, data: bytes) -> None:
        try:
            cid, body = packets.decode_feedback_data(data, self.cid_mode.is_large)
        except CodecError as e:
            logger.warning("comp %d: dropping malformed feedback: %s", self.comp_id, e)
            return
        self.stats["feedback_received"] += 1
        ctx = self.by_cid.get(cid)
        if ctx is None:
            logger.debug("comp %d: feedback for unknown context %d", self.comp_id, cid)
            return
        if body[:1] == bytes([packets.FEEDBACK1_ACK]) or not body:
            ctx.acked = True
            if ctx.state == STATE_IR:
                logger.debug("comp %d: context %d acknowledged, go to Normal", self.comp_id, cid)
                ctx.state = STATE_NORMAL

    def _flush_feedback(self) -> bytes:
        out = b"".join(packets.wrap_feedback(fb) for fb in self.pending_feedback)
        self.stats["feedback_sent"] += len(self.pending_feedback)
        self.pending_feedback = []
        return out

    # --- packet building ---

    def _cid_fields(self, cid: int):
        if self.cid_mode.is_large:
            return b"", packets.encode_sdvl(cid)
        return packets.add_cid_octet(cid), b""

    def _build_ir(self, ctx: CompressionContext, packet: bytes) -> bytes:
        add_cid, large_cid = self._cid_fields(ctx.cid)
        header = add_cid + bytes([packets.PACKET_IR]) + large_cid + bytes([packets.PROFILE_UNCOMPRESSED])
        return header + struct.pack("B", crc8(header)) + packet

    def _build_normal(self, ctx: CompressionContext, packet: bytes) -> bytes:
        add_cid, large_cid = self._cid_fields(ctx.cid)
        return add_cid + packet[:1] + large_cid + packet[1:]

    def compress(self, payload: bytes) -> Optional[bytes]:
        payload = bytes(payload)
        self.stats["packets"] += 1
        if not payload:
            self.stats["failures"] += 1
            logger.error("comp %d: empty packet", self.comp_id)
            return None
        if len(payload) > packets.MAX_ROHC_SIZE:
            self.stats["failures"] += 1
            logger.error("comp %d: packet too large (%d bytes > %d)",
                         self.comp_id, len(payload), packets.MAX_ROHC_SIZE)
            return None

        ctx = self._context_for(payload)
        if ctx.state == STATE_NORMAL and ctx.since_refresh >= IR_REFRESH_INTERVAL:
            ctx.state = STATE_IR
            ctx.ir_sent = 0

        try:
            if ctx.state == STATE_IR:
                body = self._build_ir(ctx, payload)
                ctx.ir_sent += 1
                ctx.since_refresh = 0
                self.stats["ir_packets"] += 1
                if ctx.ir_sent >= IR_REPETITIONS:
                    ctx.state = STATE_NORMAL
            else:
                body = self._build_normal(ctx, payload)
                ctx.since_refresh += 1
                self.stats["normal_packets"] += 1
        except CodecError as e:
            self.stats["failures"] += 1
            logger.error("comp %d: %s", self.comp_id, e)
            return None

        rohc_packet = self._flush_feedback() + body
        if len(rohc_packet) > packets.MAX_ROHC_SIZE:
            self.stats["failures"] += 1
            logger.error("comp %d: ROHC packet too large (%d bytes)", self.comp_id, len(rohc_packet))
            return None

        self.stats["uncompressed_bytes"] += len(payload)
        self.stats["compressed_bytes"] += len(rohc_packet)
        return rohc_packet

    def statistics(self) -> str:
        s = self.stats
        lines = [
            f"compressor {self.comp_id}:",
            "  profile: Uncompressed (0x0000)",
            f"  cid type: {self.cid_mode.value}",
            f"  max contexts: {self.max_contexts}",
            f"  contexts in use: {len(self.contexts)}",
            f"  packets: {s['packets']} (IR: {s['ir_packets']}, Normal: {s['normal_packets']}, "
            f"failed: {s['failures']})",
            f"  contexts created/reused: {s['contexts_created']}/{s['contexts_reused']}",
            f"  feedback received/sent: {s['feedback_received']}/{s['feedback_sent']}",
            f"  bytes in/out: {s['uncompressed_bytes']}/{s['compressed_bytes']}",
        ]
        return "\n".join(lines)

    def close(self) -> None:
        self.contexts.clear()
        self.by_cid.clear()
        self.pending_feedback = []
        self.closed = True
