"""
Exact packet comparison.

Two buffers are equal only when they have the same length and the same
bytes. When they differ, a side-by-side hex report of (at most) the first
MAX_REPORTED_BYTES bytes is produced so that a human can spot the change:

    [0x45]  [0x00]  #0x00#  [0x54]        [0x45]  [0x00]  #0x01#  [0x54]

Bytes enclosed in '#' differ, bytes enclosed in brackets match.
"""

from typing import List

MAX_REPORTED_BYTES = 180
BYTES_PER_ROW = 4

REPORT_HEADER = "------------------------------ Compare ------------------------------"
REPORT_FOOTER = "----------------------- packets are different -----------------------"


class Comparison:
    def __init__(self, equal: bool, report: List[str] = None, compared: int = 0):
        self.equal = equal
        self.report = report or []
        self.compared = compared

    def __bool__(self):
        return self.equal

    @property
    def text(self) -> str:
        return "\n".join(self.report)


def _cell(byte: int, differs: bool) -> str:
    if differs:
        return f"#0x{byte:02x}#"
    return f"[0x{byte:02x}]"


def format_rows(a: bytes, b: bytes, length: int) -> List[str]:
    rows = []
    for start in range(0, length, BYTES_PER_ROW):
        end = min(start + BYTES_PER_ROW, length)
        left, right = [], []
        for i in range(start, end):
            differs = a[i] != b[i]
            left.append(_cell(a[i], differs))
            right.append(_cell(b[i], differs))
        # pad the left column so that both columns stay aligned
        left_text = "".join(c + "  " for c in left).ljust(8 * BYTES_PER_ROW)
        rows.append(left_text + "      " + "  ".join(right))
    return rows


def compare(a: bytes, b: bytes) -> Comparison:
    """Compare two packets byte for byte.

    Args:
        a: First packet (the reference side)
        b: Second packet

    Returns:
        A Comparison that is truthy when packets are equal. When they are
        not, its report holds the human-readable diff lines.
    """
    a = bytes(a)
    b = bytes(b)
    length = min(MAX_REPORTED_BYTES, len(a), len(b))

    if len(a) == len(b) and a == b:
        return Comparison(True, compared=len(a))

    report = [REPORT_HEADER]
    if len(a) != len(b):
        report.append(
            f"packets have different sizes ({len(a)} != {len(b)}), "
            f"compare only the {length} first bytes"
        )
    report.extend(format_rows(a, b, length))
    report.append(REPORT_FOOTER)
    return Comparison(False, report, compared=length)
