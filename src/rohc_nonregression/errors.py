class HarnessError(Exception):
    pass


class StartupError(HarnessError):
    """Raised while the run is being set up; no frame has been processed yet."""


class ConfigError(StartupError):
    pass


class UnsupportedLinkType(StartupError):
    def __init__(self, link_type, where="source"):
        self.link_type = link_type
        self.where = where
        super().__init__(
            f"link layer type {link_type} not supported in {where} dump "
            f"(supported = Ethernet, Linux cooked sockets, raw IP)"
        )


class CodecError(HarnessError):
    """A compressor or decompressor could not handle a packet."""
