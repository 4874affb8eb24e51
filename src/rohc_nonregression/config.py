import os
import logging
from dataclasses import dataclass
from typing import Optional

from .errors import ConfigError
from .models import CidMode

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONTEXTS = 15
MIN_CONTEXTS = 1
MAX_CONTEXTS = 16384

# Set to 1 when the codec under test was built with the RTP bit type option:
# its ROHC packets can never match the reference captures.
RTP_BIT_TYPE_ENV = "ROHC_RTP_BIT_TYPE"


def parse_cid_type(cid_type: str) -> CidMode:
    for mode in CidMode:
        if mode.value == cid_type:
            return mode
    raise ConfigError(
        f"invalid CID type '{cid_type}', only 'smallcid' and 'largecid' expected"
    )


def check_max_contexts(max_contexts: int) -> int:
    if max_contexts < MIN_CONTEXTS or max_contexts > MAX_CONTEXTS:
        raise ConfigError(
            f"the maximum number of ROHC contexts should be between "
            f"{MIN_CONTEXTS} and {MAX_CONTEXTS}"
        )
    return max_contexts


def rtp_bit_type_from_env() -> bool:
    return os.environ.get(RTP_BIT_TYPE_ENV, "0").strip().lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class RunConfig:
    cid_mode: CidMode
    source_path: str
    max_contexts: int = DEFAULT_MAX_CONTEXTS
    output_path: Optional[str] = None
    reference_path: Optional[str] = None
    size_log_path: Optional[str] = None
    reference_invalid: bool = False

    def __post_init__(self):
        check_max_contexts(self.max_contexts)

    @classmethod
    def from_args(cls, args) -> "RunConfig":
        """Resolve an argparse namespace into a RunConfig.

        Raises ConfigError for an out-of-range context count or an unknown
        CID type.
        """
        max_contexts = check_max_contexts(args.max_contexts)
        config = cls(
            cid_mode=parse_cid_type(args.cid_type),
            source_path=args.flow,
            max_contexts=max_contexts,
            output_path=args.output,
            reference_path=args.compare,
            size_log_path=args.rohc_size_output,
            reference_invalid=bool(args.rtp_bit_type),
        )
        logger.debug("resolved run configuration: %s", config)
        return config
