"""
Test Configuration
==================

Pytest fixtures for the non-regression harness: in-memory frame sources and
sinks, scripted codecs, and scapy-built Ethernet/IP frames.
"""

import io
from typing import List, Optional

import pytest
from scapy.layers.inet import IP, UDP
from scapy.layers.inet6 import IPv6
from scapy.layers.l2 import Ether
from scapy.packet import Raw

from rohc_nonregression.config import RunConfig
from rohc_nonregression.framing import DLT_EN10MB
from rohc_nonregression.interfaces import Compressor, Decompressor, FrameSink, FrameSource
from rohc_nonregression.models import CidMode, Frame
from rohc_nonregression.report import ReportEmitter

ETH_SRC = "00:11:22:33:44:55"
ETH_DST = "66:77:88:99:aa:bb"


def udp_packet(payload=b"non-regression", src="10.0.0.1", dst="10.0.0.2", sport=1234, dport=5678):
    return IP(src=src, dst=dst) / UDP(sport=sport, dport=dport) / Raw(load=payload)


def ether_packet(packet):
    return Ether(src=ETH_SRC, dst=ETH_DST) / packet


def ether_bytes(packet) -> bytes:
    return bytes(ether_packet(packet))


def ether_frame(packet=None, **kwargs) -> Frame:
    if packet is None:
        packet = udp_packet(**kwargs)
    return Frame(DLT_EN10MB, ether_bytes(packet))


class ListFrameSource(FrameSource):
    def __init__(self, frames, link_type=DLT_EN10MB, events=None, name="source"):
        self._frames = list(frames)
        self._link_type = link_type
        self.consumed = 0
        self.closed = False
        self.events = events
        self.name = name

    @property
    def link_type(self):
        return self._link_type

    def next_frame(self) -> Optional[Frame]:
        if self.consumed >= len(self._frames):
            return None
        frame = self._frames[self.consumed]
        self.consumed += 1
        return frame

    def close(self):
        self.closed = True
        if self.events is not None:
            self.events.append(f"close {self.name}")


class ListFrameSink(FrameSink):
    def __init__(self, fail=False):
        self.frames: List[Frame] = []
        self.fail = fail
        self.closed = False

    def write(self, frame):
        if self.fail:
            raise OSError(28, "No space left on device")
        self.frames.append(frame)

    def close(self):
        self.closed = True


class ScriptedCompressor(Compressor):
    """Prefixes every packet with a marker; fails on the listed call numbers."""

    def __init__(self, marker=b"\x01", fail_on=(), events=None, name="comp"):
        self.marker = marker
        self.fail_on = set(fail_on)
        self.calls = 0
        self.payloads = []
        self.cid_mode = None
        self.events = events
        self.name = name

    def compress(self, payload):
        self.calls += 1
        self.payloads.append(payload)
        if self.calls in self.fail_on:
            return None
        return self.marker + payload

    def set_cid_mode(self, mode):
        self.cid_mode = mode

    def statistics(self):
        return f"{self.name}: {self.calls} packets"

    def close(self):
        if self.events is not None:
            self.events.append(f"close {self.name}")


class ScriptedDecompressor(Decompressor):
    """Drops the marker; fails or corrupts the output on the listed call numbers."""

    def __init__(self, fail_on=(), corrupt_on=(), events=None, name="decomp"):
        self.fail_on = set(fail_on)
        self.corrupt_on = set(corrupt_on)
        self.calls = 0
        self.events = events
        self.name = name

    def decompress(self, data, cid_mode):
        self.calls += 1
        if self.calls in self.fail_on:
            return None
        packet = bytearray(data[1:])
        if self.calls in self.corrupt_on:
            packet[-1] ^= 0xFF
        return bytes(packet)

    def statistics(self):
        return f"{self.name}: {self.calls} packets"

    def close(self):
        if self.events is not None:
            self.events.append(f"close {self.name}")


@pytest.fixture
def make_frame():
    """Build an Ethernet frame around an IPv4/UDP packet."""
    return ether_frame


@pytest.fixture
def make_udp():
    return udp_packet


@pytest.fixture
def make_ipv6():
    def build(payload=b"", src="2001:db8::1", dst="2001:db8::2"):
        packet = IPv6(src=src, dst=dst, nh=59)
        if payload:
            packet = packet / Raw(load=payload)
        return packet
    return build


@pytest.fixture
def make_ether():
    """Scapy Ethernet packet with fixed addresses, nothing is resolved."""
    return ether_packet


@pytest.fixture
def ether_encode():
    return ether_bytes


@pytest.fixture
def fakes():
    """The fake collaborators, as a namespace."""
    class Fakes:
        Source = ListFrameSource
        Sink = ListFrameSink
        Compressor = ScriptedCompressor
        Decompressor = ScriptedDecompressor
    return Fakes


@pytest.fixture
def run_config():
    def build(**overrides):
        values = dict(cid_mode=CidMode.SMALL, source_path="flow.pcap")
        values.update(overrides)
        return RunConfig(**values)
    return build


@pytest.fixture
def report_stream():
    return io.StringIO()


@pytest.fixture
def emitter(report_stream):
    return ReportEmitter(report_stream)
