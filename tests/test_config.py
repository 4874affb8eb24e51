import pytest

from rohc_nonregression.cli import build_parser
from rohc_nonregression.config import (
    RTP_BIT_TYPE_ENV, RunConfig, check_max_contexts, parse_cid_type, rtp_bit_type_from_env,
)
from rohc_nonregression.errors import ConfigError, StartupError
from rohc_nonregression.models import CidMode


def test_cid_types():
    assert parse_cid_type("smallcid") is CidMode.SMALL
    assert parse_cid_type("largecid") is CidMode.LARGE
    with pytest.raises(ConfigError, match="only 'smallcid' and 'largecid' expected"):
        parse_cid_type("SMALLCID")


@pytest.mark.parametrize("value", [0, -3, 16385])
def test_context_count_out_of_range(value):
    with pytest.raises(ConfigError):
        check_max_contexts(value)


def test_context_count_bounds():
    assert check_max_contexts(1) == 1
    assert check_max_contexts(16384) == 16384


def test_config_errors_are_startup_errors():
    assert issubclass(ConfigError, StartupError)
    with pytest.raises(StartupError):
        RunConfig(CidMode.SMALL, "flow.pcap", max_contexts=0)


@pytest.mark.parametrize("value, expected", [
    ("1", True), ("yes", True), ("0", False), ("", False),
])
def test_rtp_bit_type_environment(monkeypatch, value, expected):
    monkeypatch.setenv(RTP_BIT_TYPE_ENV, value)
    assert rtp_bit_type_from_env() is expected


def test_from_args(monkeypatch):
    monkeypatch.delenv(RTP_BIT_TYPE_ENV, raising=False)
    args = build_parser().parse_args([
        "-o", "out.pcap", "-c", "ref.pcap", "--rohc-size-output", "sizes.txt",
        "--max-contexts", "450", "largecid", "flow.pcap",
    ])
    config = RunConfig.from_args(args)
    assert config == RunConfig(
        cid_mode=CidMode.LARGE,
        source_path="flow.pcap",
        max_contexts=450,
        output_path="out.pcap",
        reference_path="ref.pcap",
        size_log_path="sizes.txt",
        reference_invalid=False,
    )
