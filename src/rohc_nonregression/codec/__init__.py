"""Reference ROHC codec (Uncompressed profile) driven by the harness."""

import logging

from ..models import CidMode
from .compressor import UncompressedCompressor
from .decompressor import UncompressedDecompressor

logger = logging.getLogger(__name__)


def create_codec_pairs(cid_mode: CidMode, max_contexts: int):
    """Build the two compressor/decompressor pairs of a run.

    Decompressor 1 is associated with compressor 2 and decompressor 2 with
    compressor 1, so that the feedback of each flow travels through the
    other one. Both pairs exist before any packet is compressed.

    Returns:
        ((comp1, decomp1), (comp2, decomp2))
    """
    comp1 = UncompressedCompressor(1, max_contexts, cid_mode)
    comp2 = UncompressedCompressor(2, max_contexts, cid_mode)
    decomp1 = UncompressedDecompressor(1, associated=comp2)
    decomp2 = UncompressedDecompressor(2, associated=comp1)
    logger.debug("codec pairs created (%s, %d contexts)", cid_mode.value, max_contexts)
    return (comp1, decomp1), (comp2, decomp2)


__all__ = ["UncompressedCompressor", "UncompressedDecompressor", "create_codec_pairs"]
