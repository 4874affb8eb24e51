"""Wire helpers shared by the reference compressor and decompressor (RFC 3095)."""

from typing import Tuple

from ..errors import CodecError

PROFILE_UNCOMPRESSED = 0x00

PACKET_IR = 0xFC            # 1111110 + D bit (always 0 here)
PACKET_IR_MASK = 0xFE
PACKET_IR_DYN = 0xF8
PACKET_SEGMENT_MASK = 0xFE  # 1111111x
PACKET_SEGMENT = 0xFE

PADDING = 0xE0
ADD_CID_PREFIX = 0xE0
ADD_CID_MASK = 0xF0
FEEDBACK_PREFIX = 0xF0
FEEDBACK_MASK = 0xF8

MAX_SMALL_CID = 15
MAX_LARGE_CID = 16383
MAX_ROHC_SIZE = 5 * 1024

# FEEDBACK-1 profile octet; the Uncompressed profile only ever acknowledges
FEEDBACK1_ACK = 0x00


def encode_sdvl(value: int) -> bytes:
    if value < 0 or value > MAX_LARGE_CID:
        raise CodecError(f"CID {value} cannot be encoded as a large CID")
    if value <= 0x7F:
        return bytes([value])
    return bytes([0x80 | (value >> 8), value & 0xFF])


def decode_sdvl(data: bytes, pos: int) -> Tuple[int, int]:
    """Return (value, octets used)."""
    if pos >= len(data):
        raise CodecError("truncated large CID")
    first = data[pos]
    if first & 0x80 == 0:
        return first, 1
    if first & 0xC0 == 0x80:
        if pos + 1 >= len(data):
            raise CodecError("truncated large CID")
        return ((first & 0x3F) << 8) | data[pos + 1], 2
    raise CodecError(f"unsupported SDVL length in octet 0x{first:02x}")


def add_cid_octet(cid: int) -> bytes:
    """Small CIDs: CID 0 is implicit, CIDs 1-15 use an Add-CID octet."""
    if cid == 0:
        return b""
    if cid > MAX_SMALL_CID:
        raise CodecError(f"CID {cid} cannot be encoded as a small CID")
    return bytes([ADD_CID_PREFIX | cid])


def is_add_cid(octet: int) -> bool:
    return octet & ADD_CID_MASK == ADD_CID_PREFIX and octet != PADDING


def is_feedback(octet: int) -> bool:
    return octet & FEEDBACK_MASK == FEEDBACK_PREFIX


def encode_feedback_data(cid: int, large_cid: bool, body: bytes) -> bytes:
    if large_cid:
        return encode_sdvl(cid) + body
    return add_cid_octet(cid) + body


def decode_feedback_data(data: bytes, large_cid: bool) -> Tuple[int, bytes]:
    """Return (cid, profile-specific feedback body)."""
    if large_cid:
        cid, used = decode_sdvl(data, 0)
        return cid, data[used:]
    if data and is_add_cid(data[0]) and len(data) > 1:
        return data[0] & 0x0F, data[1:]
    return 0, data


def wrap_feedback(data: bytes) -> bytes:
    """Feedback element: 11110 + code, code being the size when it fits."""
    if not data or len(data) > 0xFF:
        raise CodecError(f"invalid feedback size {len(data)}")
    if len(data) <= 7:
        return bytes([FEEDBACK_PREFIX | len(data)]) + data
    return bytes([FEEDBACK_PREFIX, len(data)]) + data


def unwrap_feedback(packet: bytes, pos: int) -> Tuple[bytes, int]:
    """Return (feedback data, position right after the element)."""
    code = packet[pos] & 0x07
    if code:
        size, start = code, pos + 1
    else:
        if pos + 1 >= len(packet):
            raise CodecError("truncated feedback element")
        size, start = packet[pos + 1], pos + 2
    end = start + size
    if size == 0 or end > len(packet):
        raise CodecError("truncated feedback element")
    return packet[start:end], end
