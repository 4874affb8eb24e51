import io
import xml.etree.ElementTree as ET

import pytest

from rohc_nonregression.errors import ConfigError, StartupError
from rohc_nonregression.models import FrameRecord, FrameVerdict, RunTally
from rohc_nonregression.report import ReportEmitter, SizeLog


def parse(stream):
    return ET.fromstring(stream.getvalue())


def sample_record(number=1, comp=1):
    record = FrameRecord(number, comp)
    record.step("compression").ok = True
    record.step("compression").log.append("42 bytes compressed into a 45 byte ROHC packet")
    record.step("rohc_comparison").log.append("No ROHC packets given for reference")
    record.step("decompression").ok = True
    record.step("ip_comparison").ok = True
    record.step("ip_comparison").log.append("Packets are equal")
    record.verdict = FrameVerdict.SUCCESS
    return record


def test_document_layout(emitter, report_stream):
    tally = RunTally()
    tally.frames = 1
    tally.record(FrameVerdict.SUCCESS)
    tally.record(FrameVerdict.SUCCESS)

    emitter.start()
    emitter.startup(True, ["source capture opened"])
    emitter.frame(sample_record(1, 1))
    emitter.frame(sample_record(1, 2))
    emitter.summary(tally)
    emitter.infos(["compressor 1:\n  packets: 1"])
    emitter.shutdown(["source capture released"])
    emitter.end()

    root = parse(report_stream)
    assert root.tag == "test"
    assert [child.tag for child in root] == [
        "startup", "packet", "packet", "summary", "infos", "shutdown",
    ]
    assert root.find("startup/status").text == "ok"
    assert "source capture opened" in root.find("startup/log").text
    assert root.find("shutdown/status").text == "ok"
    assert "packets: 1" in root.find("infos/log").text


def test_packet_records(emitter, report_stream):
    emitter.start()
    emitter.frame(sample_record(7, 2))
    emitter.end()

    packet = parse(report_stream).find("packet")
    assert packet.attrib == {"id": "7", "comp": "2"}
    assert [child.tag for child in packet] == [
        "compression", "rohc_comparison", "decompression", "ip_comparison",
    ]
    assert packet.find("compression/status").text == "ok"
    assert packet.find("rohc_comparison/status").text == "failed"
    assert "45 byte ROHC packet" in packet.find("compression/log").text
    assert emitter.records == 1


def test_log_text_is_escaped(emitter, report_stream):
    record = sample_record()
    record.step("compression").log.append("<bad & ugly>")
    emitter.start()
    emitter.frame(record)
    emitter.end()
    assert "<bad & ugly>" in parse(report_stream).find("packet/compression/log").text


def test_summary_counts(emitter, report_stream):
    tally = RunTally()
    tally.frames = 4
    for verdict in (FrameVerdict.SUCCESS, FrameVerdict.SUCCESS, FrameVerdict.REFERENCE,
                    FrameVerdict.MALFORMED_INPUT, FrameVerdict.MALFORMED_INPUT,
                    FrameVerdict.SUCCESS, FrameVerdict.COMPRESSION_ERROR):
        tally.record(verdict)

    emitter.start()
    emitter.summary(tally)
    emitter.end()

    summary = parse(report_stream).find("summary")
    values = {child.tag: int(child.text) for child in summary}
    assert values == {
        "packets_processed": 8,
        "compression_failed": 3,
        "decompression_failed": 0,
        "matches": 3,
        "reference_mismatches": 1,
        "malformed": 2,
    }


def test_startup_abort_is_a_complete_document(emitter, report_stream):
    emitter.abort_startup(ConfigError("invalid CID type 'mediumcid'"))
    root = parse(report_stream)
    assert root.find("startup/status").text == "failed"
    assert "mediumcid" in root.find("startup/log").text
    assert root.find("summary/packets_processed").text == "0"
    assert root.find("packet") is None


def test_output_errors_reach_the_caller():
    class ClosedPipe(io.StringIO):
        def flush(self):
            raise BrokenPipeError(32, "Broken pipe")

    emitter = ReportEmitter(ClosedPipe())
    emitter.start()
    with pytest.raises(BrokenPipeError):
        emitter.startup(True, [])


def test_size_log_truncates_existing_file(tmp_path):
    path = tmp_path / "sizes.txt"
    path.write_text("stale line\n")
    size_log = SizeLog(str(path))
    size_log.write(2, 10, 55)
    size_log.close()
    size_log.close()
    assert path.read_text() == "compressor_num = 2\tpacket_num = 10\trohc_size = 55\n"


def test_size_log_open_failure_is_a_startup_error(tmp_path):
    with pytest.raises(StartupError, match="sizes of ROHC packets"):
        SizeLog(str(tmp_path / "missing" / "sizes.txt"))
