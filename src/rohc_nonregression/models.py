from enum import Enum
from typing import List, Optional, Tuple


class CidMode(Enum):
    SMALL = "smallcid"
    LARGE = "largecid"

    @property
    def is_large(self) -> bool:
        return self is CidMode.LARGE


class Frame:
    """One captured frame, link-layer header included."""

    __slots__ = ("link_type", "data", "declared_length", "captured_length", "timestamp")

    def __init__(self, link_type: int, data: bytes, declared_length: Optional[int] = None,
                 captured_length: Optional[int] = None, timestamp: Tuple[int, int] = (0, 0)):
        object.__setattr__(self, "link_type", link_type)
        object.__setattr__(self, "data", bytes(data))
        object.__setattr__(self, "declared_length",
                           len(data) if declared_length is None else declared_length)
        object.__setattr__(self, "captured_length",
                           len(data) if captured_length is None else captured_length)
        object.__setattr__(self, "timestamp", timestamp)

    def __setattr__(self, name, value):
        raise AttributeError("Frame is immutable")

    def __repr__(self):
        return (f"Frame(link_type={self.link_type}, len={self.declared_length}, "
                f"caplen={self.captured_length})")


# --- Per-step outcomes ---

class CompressionOutcome:
    def __init__(self, data: Optional[bytes] = None, reason: str = ""):
        self.data = data
        self.reason = reason

    @property
    def ok(self) -> bool:
        return self.data is not None

    @classmethod
    def failed(cls, reason: str) -> "CompressionOutcome":
        return cls(None, reason)


class DecompressionOutcome(CompressionOutcome):
    pass


class ReferenceStatus(Enum):
    MATCHED = "matched"
    MISMATCHED = "mismatched"
    NOT_AVAILABLE = "not_available"
    SKIPPED = "skipped"


class ReferenceOutcome:
    def __init__(self, status: ReferenceStatus, detail: str = ""):
        self.status = status
        self.detail = detail

    @property
    def is_soft_failure(self) -> bool:
        # NOT_AVAILABLE only suppresses the check, it never fails the frame
        return self.status in (ReferenceStatus.MISMATCHED, ReferenceStatus.SKIPPED)


class RoundTripOutcome:
    def __init__(self, matched: bool, diff: str = ""):
        self.matched = matched
        self.diff = diff


# --- Verdicts ---

class FrameVerdict(Enum):
    SUCCESS = "success"
    REFERENCE = "reference"
    COMPRESSION_ERROR = "compression_error"
    DECOMPRESSION_ERROR = "decompression_error"
    MALFORMED_INPUT = "malformed_input"

    @property
    def is_hard(self) -> bool:
        """Codec failures end the whole run."""
        return self in (FrameVerdict.COMPRESSION_ERROR, FrameVerdict.DECOMPRESSION_ERROR)


class StepReport:
    """Status and free-text log of one step, as rendered in the report."""

    def __init__(self, name: str, ok: bool = False, log: Optional[List[str]] = None):
        self.name = name
        self.ok = ok
        self.log = log or []

    @property
    def status(self) -> str:
        return "ok" if self.ok else "failed"

    def to_dict(self):
        return {"name": self.name, "status": self.status, "log": list(self.log)}


class FrameRecord:
    """Everything one pipeline produced for one frame."""

    STEPS = ("compression", "rohc_comparison", "decompression", "ip_comparison")

    def __init__(self, frame_number: int, pipeline_id: int):
        self.frame_number = frame_number
        self.pipeline_id = pipeline_id
        self.steps = {name: StepReport(name) for name in self.STEPS}
        self.compression: Optional[CompressionOutcome] = None
        self.reference: Optional[ReferenceOutcome] = None
        self.decompression: Optional[DecompressionOutcome] = None
        self.round_trip: Optional[RoundTripOutcome] = None
        self.verdict: Optional[FrameVerdict] = None

    def step(self, name: str) -> StepReport:
        return self.steps[name]

    def to_dict(self):
        return {
            "packet": self.frame_number,
            "comp": self.pipeline_id,
            "verdict": self.verdict.value if self.verdict else None,
            "steps": [self.steps[n].to_dict() for n in self.STEPS],
        }


class RunTally:
    def __init__(self):
        self.frames = 0
        self.ok = 0
        self.reference = 0
        self.compression_errors = 0
        self.decompression_errors = 0
        self.malformed = 0

    def record(self, verdict: FrameVerdict):
        if verdict is FrameVerdict.SUCCESS:
            self.ok += 1
        elif verdict is FrameVerdict.REFERENCE:
            self.reference += 1
        elif verdict is FrameVerdict.COMPRESSION_ERROR:
            self.compression_errors += 1
        elif verdict is FrameVerdict.DECOMPRESSION_ERROR:
            self.decompression_errors += 1
        else:
            self.malformed += 1

    @property
    def packets_processed(self) -> int:
        return 2 * self.frames

    @property
    def hard_errors(self) -> int:
        return self.compression_errors + self.decompression_errors

    def as_dict(self):
        return {
            "frames": self.frames,
            "ok": self.ok,
            "reference": self.reference,
            "compression_errors": self.compression_errors,
            "decompression_errors": self.decompression_errors,
            "malformed": self.malformed,
        }


class RunResult(Enum):
    SUCCESS = 0
    SOFT_FAILURE = 1
    HARD_FAILURE = 2
    STARTUP_FAILURE = 3
    SKIPPED = 77

    @property
    def exit_code(self) -> int:
        if self is RunResult.SUCCESS:
            return 0
        if self is RunResult.SKIPPED:
            return 77
        return 1
