import struct
from typing import Optional

from scapy.data import DLT_EN10MB, DLT_LINUX_SLL, DLT_RAW

from .errors import UnsupportedLinkType
from .models import Frame

ETHER_HDR_LEN = 14
LINUX_COOKED_HDR_LEN = 16
# Minimum Ethernet frame without FCS; shorter IP packets are padded up to it
ETHER_FRAME_MIN_LEN = 60
IPV6_HDR_LEN = 40

# pcap files store LINKTYPE_RAW, libpcap reports DLT_RAW (12, or 14 on OpenBSD)
LINKTYPE_RAW = 101
RAW_LINK_TYPES = (DLT_RAW, 12, 14, LINKTYPE_RAW)

# Unassigned EtherType marking frames that carry ROHC packets
ROHC_ETHERTYPE = 0x162F

LINK_HEADER_LENGTHS = {
    DLT_EN10MB: ETHER_HDR_LEN,
    DLT_LINUX_SLL: LINUX_COOKED_HDR_LEN,
}
LINK_HEADER_LENGTHS.update({dlt: 0 for dlt in RAW_LINK_TYPES})


def header_length(link_type: int, where: str = "source") -> int:
    try:
        return LINK_HEADER_LENGTHS[link_type]
    except KeyError:
        raise UnsupportedLinkType(link_type, where) from None


def ip_total_length(packet: bytes) -> Optional[int]:
    """Length announced by the IP header, None if it cannot be read."""
    if not packet:
        return None
    version = (packet[0] >> 4) & 0x0F
    if version == 4:
        if len(packet) < 4:
            return None
        return struct.unpack("!H", packet[2:4])[0]
    if len(packet) < 6:
        return None
    return IPV6_HDR_LEN + struct.unpack("!H", packet[4:6])[0]


def effective_payload_length(link_type: int, frame_bytes: bytes) -> int:
    """Size of the IP packet in the frame, Ethernet padding excluded."""
    link_len = header_length(link_type)
    payload_len = len(frame_bytes) - link_len
    if link_len == ETHER_HDR_LEN and len(frame_bytes) == ETHER_FRAME_MIN_LEN:
        tot_len = ip_total_length(frame_bytes[link_len:])
        if tot_len is not None and tot_len < payload_len:
            return tot_len
    return payload_len


def build_output_frame(frame: Frame, link_len: int, compressed: bytes) -> Frame:
    """Wrap a ROHC packet into a link header borrowed from its source frame."""
    header = bytearray(frame.data[:link_len])
    if link_len == ETHER_HDR_LEN:
        struct.pack_into("!H", header, 12, ROHC_ETHERTYPE)
    elif link_len == LINUX_COOKED_HDR_LEN:
        struct.pack_into("!H", header, LINUX_COOKED_HDR_LEN - 2, ROHC_ETHERTYPE)
    data = bytes(header) + compressed
    return Frame(frame.link_type, data, len(data), len(data), frame.timestamp)
