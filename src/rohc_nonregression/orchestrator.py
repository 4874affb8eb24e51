"""
Dual-flow orchestration of a non-regression run.

Two compressor/decompressor pairs are fed with the same flow of packets.
Their feedback channels are crossed: decompressor 1 sends its feedback
through compressor 2 / decompressor 2 to compressor 1, and the other way
around:

          flow A    +--------------+   ROHC   +----------------+
    IP  ----------> | Compressor 1 | -------> | Decompressor 1 | ---> IP
                    +--------------+          +----------------+
                           ^ feedback A                | feedback A
                           |                           v
    IP  <---------- +----------------+  ROHC  +--------------+ <--- IP
          flow B    | Decompressor 2 | <----- | Compressor 2 |
                    +----------------+        +--------------+

For every input packet, pipeline 1 then pipeline 2 process it before the
next packet is read. When a reference capture is given, one reference ROHC
packet is consumed per (packet, pipeline) step in that same order.
"""

import logging
from contextlib import ExitStack
from enum import Enum
from typing import Callable, List, Optional, Tuple

from .capture import PcapFrameSink, PcapFrameSource
from .codec import create_codec_pairs
from .config import RunConfig
from .errors import StartupError
from .framing import header_length
from .interfaces import Compressor, Decompressor, FrameSink, FrameSource
from .models import Frame, FrameRecord, RunResult, RunTally
from .pipeline import CodecPipeline
from .report import ReportEmitter, SizeLog

logger = logging.getLogger(__name__)

CodecPair = Tuple[Compressor, Decompressor]
CodecFactory = Callable[[RunConfig], Tuple[CodecPair, CodecPair]]


class RunState(Enum):
    INIT = "init"
    RUNNING = "running"
    FINALIZED = "finalized"
    ABORTED = "aborted"


def default_codec_factory(config: RunConfig):
    return create_codec_pairs(config.cid_mode, config.max_contexts)


class DualFlowOrchestrator:
    def __init__(self, config: RunConfig, emitter: Optional[ReportEmitter] = None,
                 codec_factory: CodecFactory = default_codec_factory,
                 open_source: Callable[..., FrameSource] = PcapFrameSource,
                 open_sink: Callable[[str, int], FrameSink] = PcapFrameSink,
                 open_size_log: Callable[[str], SizeLog] = SizeLog):
        self.config = config
        self.emitter = emitter or ReportEmitter()
        self.codec_factory = codec_factory
        self.open_source = open_source
        self.open_sink = open_sink
        self.open_size_log = open_size_log

        self.state = RunState.INIT
        self.tally = RunTally()
        self.records: List[FrameRecord] = []
        self.result: Optional[RunResult] = None

        self._source: Optional[FrameSource] = None
        self._reference: Optional[FrameSource] = None
        self._pipelines: List[CodecPipeline] = []
        self._codecs: List[object] = []
        self._shutdown_log: List[str] = []

    # --- Init ---

    def _release(self, name: str, resource):
        def release():
            resource.close()
            self._shutdown_log.append(f"{name} released")
            logger.debug("%s released", name)
        return release

    def _startup(self, stack: ExitStack, log: List[str]):
        cfg = self.config

        self._source = self.open_source(cfg.source_path)
        stack.callback(self._release("source capture", self._source))
        link_type = self._source.link_type
        header_length(link_type, "source")
        log.append(f"source capture '{cfg.source_path}' opened (link type {link_type})")

        sink = None
        if cfg.output_path:
            sink = self.open_sink(cfg.output_path, link_type)
            stack.callback(self._release("output capture", sink))
            log.append(f"ROHC packets will be saved in '{cfg.output_path}'")

        reference_link_type = None
        if cfg.reference_path:
            self._reference = self.open_source(cfg.reference_path, "comparison")
            stack.callback(self._release("comparison capture", self._reference))
            reference_link_type = self._reference.link_type
            header_length(reference_link_type, "comparison")
            log.append(f"comparison capture '{cfg.reference_path}' opened "
                       f"(link type {reference_link_type})")

        size_log = None
        if cfg.size_log_path:
            size_log = self.open_size_log(cfg.size_log_path)
            stack.callback(self._release("ROHC size log", size_log))
            log.append(f"ROHC sizes will be saved in '{cfg.size_log_path}'")

        try:
            (comp1, decomp1), (comp2, decomp2) = self.codec_factory(cfg)
        except Exception as e:
            raise StartupError(f"cannot create the compressors/decompressors: {e}") from e
        # released in reverse order: decompressor 2 first, compressor 1 last
        for name, codec in (("compressor 1", comp1), ("compressor 2", comp2),
                            ("decompressor 1", decomp1), ("decompressor 2", decomp2)):
            stack.callback(self._release(name, codec))
        self._codecs = [comp1, comp2, decomp1, decomp2]
        log.append(f"compressors/decompressors created ({cfg.cid_mode.value}, "
                   f"{cfg.max_contexts} contexts max)")

        common = dict(
            cid_mode=cfg.cid_mode,
            link_type=link_type,
            reference_link_type=reference_link_type,
            sink=sink,
            size_log=size_log,
            reference_invalid=cfg.reference_invalid,
        )
        try:
            self._pipelines = [
                CodecPipeline(1, comp1, decomp1, **common),
                CodecPipeline(2, comp2, decomp2, **common),
            ]
        except StartupError:
            raise
        except Exception as e:
            raise StartupError(f"cannot configure the compressors: {e}") from e

    # --- Running ---

    def _next_reference(self) -> Optional[Frame]:
        if self._reference is None:
            return None
        return self._reference.next_frame()

    def _run_frames(self):
        self.state = RunState.RUNNING
        for frame in self._source:
            self.tally.frames += 1
            number = self.tally.frames
            for pipeline in self._pipelines:
                record = pipeline.process_frame(number, frame, self._next_reference())
                self.records.append(record)
                self.tally.record(record.verdict)
                self.emitter.frame(record)
                logger.debug("record: %s", record.to_dict())
                if record.verdict.is_hard:
                    logger.error("packet %d, comp %d: %s, stopping the run",
                                 number, pipeline.pipeline_id, record.verdict.value)
                    self.state = RunState.ABORTED
                    return

    # --- Finalize ---

    def _aggregate(self) -> RunResult:
        t = self.tally
        expected = t.packets_processed
        if t.hard_errors or t.malformed:
            return RunResult.HARD_FAILURE
        if self.config.reference_invalid:
            if t.reference == expected and t.ok == 0:
                return RunResult.SKIPPED
            return RunResult.SOFT_FAILURE
        if t.reference == 0 and t.ok == expected:
            return RunResult.SUCCESS
        return RunResult.SOFT_FAILURE

    def statistics(self) -> List[str]:
        return [codec.statistics() for codec in self._codecs]

    def run(self) -> RunResult:
        self.emitter.start()
        startup_log: List[str] = []
        with ExitStack() as stack:
            try:
                self._startup(stack, startup_log)
            except StartupError as e:
                logger.error("startup failed: %s", e)
                startup_log.append(str(e))
                self.emitter.startup(False, startup_log)
                self.state = RunState.ABORTED
                self.result = RunResult.STARTUP_FAILURE
            else:
                self.emitter.startup(True, startup_log)
                self._run_frames()
                if self.state is RunState.RUNNING:
                    self.state = RunState.FINALIZED
                self.result = self._aggregate()
                self.emitter.summary(self.tally)
                self.emitter.infos(self.statistics())
                stack.close()
                self.emitter.shutdown(self._shutdown_log)
        if self.result is RunResult.STARTUP_FAILURE:
            self.emitter.summary(self.tally)
        self.emitter.end()
        logger.info("run finished: %s (%s)", self.result.name, self.tally.as_dict())
        return self.result
