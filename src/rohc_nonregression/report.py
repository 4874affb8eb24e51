"""
Streaming XML report and ROHC size log.

The report is written element by element as the run progresses, so a run
that stops early still leaves every processed packet on the output:

    <test>
      <startup>...</startup>
      <packet id="1" comp="1">
        <compression><log>...</log><status>ok</status></compression>
        <rohc_comparison>...</rohc_comparison>
        <decompression>...</decompression>
        <ip_comparison>...</ip_comparison>
      </packet>
      ...
      <summary>...</summary>
      <infos>...</infos>
      <shutdown>...</shutdown>
    </test>
"""

import logging
import sys
from typing import Iterable, List, Optional, TextIO
from xml.sax.saxutils import XMLGenerator

from .errors import StartupError
from .models import FrameRecord, RunTally

logger = logging.getLogger(__name__)

REPORT_ENCODING = "utf-8"


class ReportEmitter:
    def __init__(self, out: Optional[TextIO] = None):
        self.out = out if out is not None else sys.stdout
        self._xml = XMLGenerator(self.out, encoding=REPORT_ENCODING, short_empty_elements=False)
        self._depth = 0
        self.records = 0

    # --- low level helpers ---

    def _indent(self):
        self._xml.ignorableWhitespace("\n" + "\t" * self._depth)

    def _open(self, name: str, attrs=None):
        self._indent()
        self._xml.startElement(name, attrs or {})
        self._depth += 1

    def _close(self, name: str):
        self._depth -= 1
        self._indent()
        self._xml.endElement(name)

    def _leaf(self, name: str, text):
        self._indent()
        self._xml.startElement(name, {})
        self._xml.characters(str(text))
        self._xml.endElement(name)

    def _log(self, lines: Iterable[str]):
        self._indent()
        self._xml.startElement("log", {})
        lines = list(lines)
        if lines:
            self._xml.characters("\n" + "\n".join(lines) + "\n" + "\t" * self._depth)
        self._xml.endElement("log")

    def _section(self, name: str, ok: bool, lines: Iterable[str], attrs=None):
        self._open(name, attrs)
        self._log(lines)
        self._leaf("status", "ok" if ok else "failed")
        self._close(name)

    def flush(self):
        self.out.flush()

    # --- document ---

    def start(self):
        self._xml.startDocument()
        self._xml.startElement("test", {})
        self._depth = 1

    def startup(self, ok: bool, lines: List[str]):
        self._section("startup", ok, lines)
        self.flush()

    def frame(self, record: FrameRecord):
        attrs = {"id": str(record.frame_number), "comp": str(record.pipeline_id)}
        self._open("packet", attrs)
        for name in FrameRecord.STEPS:
            step = record.step(name)
            self._section(name, step.ok, step.log)
        self._close("packet")
        self.records += 1
        self.flush()

    def summary(self, tally: RunTally):
        self._open("summary")
        self._leaf("packets_processed", tally.packets_processed)
        self._leaf("compression_failed", tally.compression_errors + tally.malformed)
        self._leaf("decompression_failed", tally.decompression_errors)
        self._leaf("matches", tally.ok)
        self._leaf("reference_mismatches", tally.reference)
        self._leaf("malformed", tally.malformed)
        self._close("summary")

    def infos(self, statistics: Iterable[str]):
        self._open("infos")
        self._log(statistics)
        self._close("infos")

    def shutdown(self, lines: List[str], ok: bool = True):
        self._section("shutdown", ok, lines)

    def end(self):
        self._depth = 0
        self._xml.ignorableWhitespace("\n")
        self._xml.endElement("test")
        self._xml.ignorableWhitespace("\n")
        self._xml.endDocument()
        self.flush()

    def abort_startup(self, error: StartupError):
        """Whole document for a run that could not even be configured."""
        self.start()
        self.startup(False, [str(error)])
        self.summary(RunTally())
        self.end()


class SizeLog:
    """One line per compressed packet: which compressor, which packet, which size."""

    def __init__(self, path: str):
        self.path = path
        try:
            self._file = open(path, "w+")
        except OSError as e:
            raise StartupError(
                f"failed to open file '{path}' to output the sizes of ROHC packets: "
                f"{e.strerror} ({e.errno})"
            ) from e
        logger.debug("sizes of ROHC packets written to %s", path)

    def write(self, comp_id: int, packet_num: int, rohc_size: int):
        self._file.write(
            f"compressor_num = {comp_id}\tpacket_num = {packet_num}\trohc_size = {rohc_size}\n"
        )

    def close(self):
        if self._file is not None:
            self._file.close()
            self._file = None
