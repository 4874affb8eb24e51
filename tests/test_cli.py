import io
import xml.etree.ElementTree as ET

import pytest
from scapy.utils import wrpcap

from rohc_nonregression.cli import build_parser, main
from rohc_nonregression.config import RTP_BIT_TYPE_ENV


@pytest.fixture
def flow_path(tmp_path, make_udp, make_ether):
    path = tmp_path / "flow.pcap"
    wrpcap(str(path), [make_ether(make_udp(payload=f"frame {i}".encode())) for i in range(1, 4)])
    return str(path)


def run(argv):
    out = io.StringIO()
    status = main(argv, out=out)
    return status, ET.fromstring(out.getvalue())


def summary_of(report):
    return {child.tag: int(child.text) for child in report.find("summary")}


def test_three_ethernet_frames(flow_path):
    status, report = run(["smallcid", flow_path])
    assert status == 0
    assert len(report.findall("packet")) == 6
    summary = summary_of(report)
    assert summary["packets_processed"] == 6
    assert summary["matches"] == 6
    assert summary["decompression_failed"] == 0
    assert report.find("startup/status").text == "ok"
    assert report.find("shutdown/status").text == "ok"


def test_large_cids(flow_path):
    status, report = run(["largecid", "--max-contexts", "300", flow_path])
    assert status == 0
    assert "largecid" in report.find("infos/log").text


def test_replay_against_saved_rohc_packets(flow_path, tmp_path):
    output = str(tmp_path / "rohc.pcap")
    status, _ = run(["smallcid", "-o", output, flow_path])
    assert status == 0

    status, report = run(["smallcid", "-c", output, flow_path])
    assert status == 0
    statuses = [p.find("rohc_comparison/status").text for p in report.findall("packet")]
    assert statuses == ["ok"] * 6


def test_replay_with_other_cid_type_fails(flow_path, tmp_path):
    output = str(tmp_path / "rohc.pcap")
    run(["smallcid", "-o", output, flow_path])

    status, report = run(["largecid", "-c", output, flow_path])
    assert status == 1
    assert summary_of(report)["reference_mismatches"] > 0


def test_size_log(flow_path, tmp_path):
    sizes = tmp_path / "sizes.txt"
    status, _ = run(["smallcid", "--rohc-size-ouput", str(sizes), flow_path])
    assert status == 0
    lines = sizes.read_text().splitlines()
    assert len(lines) == 6
    assert lines[0].startswith("compressor_num = 1\tpacket_num = 1\trohc_size = ")
    assert lines[1].startswith("compressor_num = 2\tpacket_num = 1\trohc_size = ")


def test_rtp_bit_type_run_is_skipped(flow_path):
    status, report = run(["--rtp-bit-type", "smallcid", flow_path])
    assert status == 77
    assert summary_of(report)["reference_mismatches"] == 6


def test_rtp_bit_type_from_environment(flow_path, monkeypatch):
    monkeypatch.setenv(RTP_BIT_TYPE_ENV, "1")
    status, _ = run(["smallcid", flow_path])
    assert status == 77


def test_bad_cid_type_is_reported_in_the_document(flow_path):
    status, report = run(["mediumcid", flow_path])
    assert status == 1
    assert report.find("startup/status").text == "failed"
    assert "mediumcid" in report.find("startup/log").text
    assert report.find("packet") is None


def test_missing_flow_is_a_startup_failure(tmp_path):
    status, report = run(["smallcid", str(tmp_path / "missing.pcap")])
    assert status == 1
    assert report.find("startup/status").text == "failed"
    assert summary_of(report)["packets_processed"] == 0


@pytest.mark.parametrize("value", ["0", "16385"])
def test_bad_context_count_is_a_usage_error(flow_path, value, capsys):
    out = io.StringIO()
    assert main(["--max-contexts", value, "smallcid", flow_path], out=out) == 1
    assert out.getvalue() == ""
    assert "between 1 and 16384" in capsys.readouterr().err


def test_usage_errors_exit_with_one():
    with pytest.raises(SystemExit) as excinfo:
        main(["smallcid"])
    assert excinfo.value.code == 1


def test_size_option_spellings():
    parser = build_parser()
    for option in ("--rohc-size-ouput", "--rohc-size-output"):
        args = parser.parse_args([option, "sizes.txt", "smallcid", "flow.pcap"])
        assert args.rohc_size_output == "sizes.txt"
    assert parser.parse_args(["smallcid", "flow.pcap"]).max_contexts == 15


def test_capture_cut_short_fails_the_last_frame(tmp_path, make_udp, make_ether):
    path = tmp_path / "flow.pcap"
    wrpcap(str(path), [make_ether(make_udp(payload=f"frame {i}".encode())) for i in range(1, 3)])
    path.write_bytes(path.read_bytes()[:-10])

    status, report = run(["smallcid", str(path)])
    assert status == 1
    summary = summary_of(report)
    assert summary["malformed"] == 2
    assert summary["matches"] == 2
    statuses = [(p.get("id"), p.find("compression/status").text) for p in report.findall("packet")]
    assert statuses == [("1", "ok"), ("1", "ok"), ("2", "failed"), ("2", "failed")]
