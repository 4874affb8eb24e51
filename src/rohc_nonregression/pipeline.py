import logging
from typing import Optional

from .compare import compare
from .errors import CodecError
from .framing import build_output_frame, effective_payload_length, header_length
from .interfaces import Compressor, Decompressor, FrameSink
from .models import (
    CidMode, CompressionOutcome, DecompressionOutcome, Frame, FrameRecord,
    FrameVerdict, ReferenceOutcome, ReferenceStatus, RoundTripOutcome,
)
from .report import SizeLog

logger = logging.getLogger(__name__)

RTP_BIT_TYPE_SKIP_MESSAGE = (
    "RTP bit type option enabled, comparison with ROHC packets "
    "of reference is skipped because they will not match"
)
NO_REFERENCE_MESSAGE = (
    "No ROHC packets given for reference, cannot compare (run with the -c option)"
)
EQUAL_MESSAGE = "Packets are equal"

SKIPPED_AFTER_COMPRESSION = (
    ("rohc_comparison", "Compression failed, cannot compare the packets!"),
    ("decompression", "Compression failed, cannot decompress the ROHC packet!"),
    ("ip_comparison", "Compression failed, cannot compare the packets!"),
)


class CodecPipeline:
    """
    One compressor feeding one decompressor.

    process_frame() runs, for a single frame, the compression, the optional
    comparison against a reference ROHC packet, the optional persistence of
    the ROHC packet, the decompression and the comparison of the
    decompressed packet with the original one. Each step that fails skips
    the steps that depend on it. The result is a FrameRecord carrying the
    verdict and the log of every step.
    """

    def __init__(self, pipeline_id: int, compressor: Compressor, decompressor: Decompressor,
                 cid_mode: CidMode, link_type: int, reference_link_type: Optional[int] = None,
                 sink: Optional[FrameSink] = None, size_log: Optional[SizeLog] = None,
                 reference_invalid: bool = False):
        self.pipeline_id = pipeline_id
        self.compressor = compressor
        self.decompressor = decompressor
        self.cid_mode = cid_mode
        self.link_type = link_type
        self.link_len = header_length(link_type)
        self.reference_link_len = (
            header_length(reference_link_type, "comparison")
            if reference_link_type is not None else 0
        )
        self.sink = sink
        self.size_log = size_log
        self.reference_invalid = reference_invalid
        self.compressor.set_cid_mode(cid_mode)

    # --- steps ---

    @staticmethod
    def _skip_after_compression(record: FrameRecord):
        for name, message in SKIPPED_AFTER_COMPRESSION:
            record.step(name).log.append(message)

    def _check_frame(self, frame: Frame, record: FrameRecord) -> bool:
        if frame.declared_length > self.link_len and frame.declared_length == frame.captured_length:
            return True
        record.step("compression").log.append(
            f"bad PCAP packet (len = {frame.declared_length}, caplen = {frame.captured_length})"
        )
        self._skip_after_compression(record)
        record.verdict = FrameVerdict.MALFORMED_INPUT
        return False

    def _extract_payload(self, frame: Frame, record: FrameRecord) -> bytes:
        payload_len = effective_payload_length(self.link_type, frame.data)
        captured_payload = len(frame.data) - self.link_len
        if payload_len < captured_payload:
            record.step("compression").log.append(
                f"The Ethernet frame has {captured_payload - payload_len} bytes of padding "
                f"after the {payload_len} byte IP packet!"
            )
        return bytes(memoryview(frame.data)[self.link_len:self.link_len + payload_len])

    def _compress(self, payload: bytes, record: FrameRecord) -> CompressionOutcome:
        step = record.step("compression")
        try:
            compressed = self.compressor.compress(payload)
        except CodecError as e:
            step.log.append(str(e))
            return CompressionOutcome.failed(str(e))
        except Exception as e:
            logger.error("comp %d: compressor raised %s: %s", self.pipeline_id, type(e).__name__, e)
            step.log.append(f"compressor {self.pipeline_id} raised {type(e).__name__}: {e}")
            return CompressionOutcome.failed(str(e))
        if not compressed:
            step.log.append(f"compressor {self.pipeline_id} failed to compress the packet")
            return CompressionOutcome.failed("compression failed")
        step.ok = True
        step.log.append(f"{len(payload)} bytes compressed into a {len(compressed)} byte ROHC packet")
        return CompressionOutcome(bytes(compressed))

    def _compare_reference(self, compressed: bytes, reference: Optional[Frame],
                           record: FrameRecord) -> ReferenceOutcome:
        step = record.step("rohc_comparison")
        if self.reference_invalid:
            step.log.append(RTP_BIT_TYPE_SKIP_MESSAGE)
            return ReferenceOutcome(ReferenceStatus.SKIPPED, RTP_BIT_TYPE_SKIP_MESSAGE)
        if reference is None or reference.captured_length <= self.reference_link_len:
            step.log.append(NO_REFERENCE_MESSAGE)
            return ReferenceOutcome(ReferenceStatus.NOT_AVAILABLE)

        result = compare(reference.data[self.reference_link_len:], compressed)
        if not result:
            step.log.extend(result.report)
            return ReferenceOutcome(ReferenceStatus.MISMATCHED, result.text)
        step.ok = True
        step.log.append(EQUAL_MESSAGE)
        return ReferenceOutcome(ReferenceStatus.MATCHED)

    def _persist(self, frame_number: int, frame: Frame, compressed: bytes, record: FrameRecord):
        if self.sink is not None:
            try:
                self.sink.write(build_output_frame(frame, self.link_len, compressed))
            except OSError as e:
                logger.warning("comp %d, packet %d: cannot write ROHC packet: %s",
                               self.pipeline_id, frame_number, e)
                record.step("compression").log.append(f"failed to save the ROHC packet: {e}")
        if self.size_log is not None:
            try:
                self.size_log.write(self.pipeline_id, frame_number, len(compressed))
            except OSError as e:
                logger.warning("comp %d, packet %d: cannot log ROHC size: %s",
                               self.pipeline_id, frame_number, e)

    def _decompress(self, compressed: bytes, record: FrameRecord) -> DecompressionOutcome:
        step = record.step("decompression")
        try:
            decompressed = self.decompressor.decompress(compressed, self.cid_mode)
        except CodecError as e:
            step.log.append(str(e))
            return DecompressionOutcome.failed(str(e))
        except Exception as e:
            logger.error("decomp %d: decompressor raised %s: %s", self.pipeline_id, type(e).__name__, e)
            step.log.append(f"decompressor {self.pipeline_id} raised {type(e).__name__}: {e}")
            return DecompressionOutcome.failed(str(e))
        if not decompressed:
            step.log.append(f"decompressor {self.pipeline_id} failed to decompress the ROHC packet")
            return DecompressionOutcome.failed("decompression failed")
        step.ok = True
        step.log.append(f"{len(compressed)} byte ROHC packet decompressed into {len(decompressed)} bytes")
        return DecompressionOutcome(bytes(decompressed))

    def _compare_round_trip(self, payload: bytes, decompressed: bytes,
                            record: FrameRecord) -> RoundTripOutcome:
        step = record.step("ip_comparison")
        result = compare(payload, decompressed)
        if not result:
            step.log.extend(result.report)
            return RoundTripOutcome(False, result.text)
        step.ok = True
        step.log.append(EQUAL_MESSAGE)
        return RoundTripOutcome(True)

    # --- driver ---

    def process_frame(self, frame_number: int, frame: Frame,
                      reference: Optional[Frame] = None) -> FrameRecord:
        record = FrameRecord(frame_number, self.pipeline_id)

        if not self._check_frame(frame, record):
            logger.info("packet %d, comp %d: malformed capture record", frame_number, self.pipeline_id)
            return record

        payload = self._extract_payload(frame, record)
        record.compression = self._compress(payload, record)
        if not record.compression.ok:
            self._skip_after_compression(record)
            record.verdict = FrameVerdict.COMPRESSION_ERROR
            return record
        compressed = record.compression.data

        record.reference = self._compare_reference(compressed, reference, record)
        self._persist(frame_number, frame, compressed, record)

        record.decompression = self._decompress(compressed, record)
        if not record.decompression.ok:
            record.step("ip_comparison").log.append(
                "Decompression failed, cannot compare the packets!"
            )
            record.verdict = FrameVerdict.DECOMPRESSION_ERROR
            return record

        record.round_trip = self._compare_round_trip(payload, record.decompression.data, record)
        # a decompressed packet that differs from the original counts as a
        # reference mismatch, not as a codec error
        if not record.round_trip.matched or record.reference.is_soft_failure:
            record.verdict = FrameVerdict.REFERENCE
        else:
            record.verdict = FrameVerdict.SUCCESS
        return record
