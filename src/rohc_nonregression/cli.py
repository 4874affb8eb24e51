#!/usr/bin/env python3
"""
ROHC non-regression tool: test a ROHC library with a flow of IP packets.

The flow goes through two compressor/decompressor pairs whose feedback
channels are crossed. The XML report is written on stdout, diagnostics on
stderr.

Usage:
    rohc-nonregression [OPTIONS] CID_TYPE FLOW

Exit status: 0 on success, 1 on failure, 77 when the test is skipped.
"""

import argparse
import logging
import sys

from . import __version__
from .config import DEFAULT_MAX_CONTEXTS, RunConfig, check_max_contexts, rtp_bit_type_from_env
from .errors import ConfigError
from .orchestrator import DualFlowOrchestrator
from .report import ReportEmitter

logger = logging.getLogger(__name__)

EXIT_FAILURE = 1


class HarnessArgumentParser(argparse.ArgumentParser):
    """Usage errors exit with status 1 like every other failure."""

    def error(self, message):
        self.print_help(sys.stderr)
        self.exit(EXIT_FAILURE, f"\n{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = HarnessArgumentParser(
        prog="rohc-nonregression",
        description="ROHC non-regression tool: test the ROHC library with a flow of IP packets",
    )
    parser.add_argument("cid_type", metavar="CID_TYPE",
                        help="The type of CID to use among 'smallcid' and 'largecid'")
    parser.add_argument("flow", metavar="FLOW",
                        help="The flow of Ethernet frames to compress (in PCAP format)")
    parser.add_argument("-o", dest="output", metavar="FILE",
                        help="Save the generated ROHC packets in FILE (PCAP format)")
    parser.add_argument("-c", dest="compare", metavar="FILE",
                        help="Compare the generated ROHC packets with the ROHC packets "
                             "stored in FILE (PCAP format)")
    parser.add_argument("--rohc-size-ouput", "--rohc-size-output", dest="rohc_size_output",
                        metavar="FILE", help="Save the sizes of ROHC packets in FILE")
    parser.add_argument("--max-contexts", type=int, default=DEFAULT_MAX_CONTEXTS, metavar="NUM",
                        help="The maximum number of ROHC contexts to simultaneously use "
                             "during the test")
    parser.add_argument("--rtp-bit-type", action="store_true", default=rtp_bit_type_from_env(),
                        help="The library under test uses the RTP bit type option: ROHC "
                             "packets of reference cannot match, report the test as skipped")
    parser.add_argument("--verbose", action="store_true", help="Verbose output on stderr")
    parser.add_argument("--version", action="version",
                        version=f"ROHC non-regression test application, version {__version__}")
    return parser


def setup_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="  [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv=None, out=None) -> int:
    """Main entry point for the non-regression test."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    logger.debug("command line: %s", vars(args))

    try:
        check_max_contexts(args.max_contexts)
    except ConfigError as e:
        print(f"{e}\n", file=sys.stderr)
        parser.print_help(sys.stderr)
        return EXIT_FAILURE

    emitter = ReportEmitter(out)
    try:
        config = RunConfig.from_args(args)
    except ConfigError as e:
        # a bad CID type is a startup failure, reported in the XML document
        emitter.abort_startup(e)
        return EXIT_FAILURE

    result = DualFlowOrchestrator(config, emitter).run()

    if result.exit_code == 0:
        print(f"PASSED: {config.source_path}", file=sys.stderr)
    elif result.exit_code == 77:
        print(f"SKIPPED: {config.source_path} (RTP bit type option)", file=sys.stderr)
    else:
        print(f"FAILED: {config.source_path} ({result.name.lower().replace('_', ' ')})",
              file=sys.stderr)
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
