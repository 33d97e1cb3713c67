"""
Exceptions raised while reading block files, the block index and the node RPC.
Decoders never return partial structures: they raise one of these instead.
"""
from typing import Optional


class ChainParserError(Exception):
    """Base class for every error raised by chainparser."""


class TruncationError(ChainParserError):
    """Fewer bytes available than a fixed-width or declared-length field requires."""

    def __init__(self, needed: int, available: int, position: int):
        super().__init__(
            f"Read past end: need {needed} bytes at offset {position}, have {available}"
        )
        self.needed = needed
        self.available = available
        self.position = position


class FramingError(ChainParserError):
    """Magic identifier at the record start does not match the network tag."""

    def __init__(self, found: int, expected: int, position: int):
        super().__init__(
            f"Invalid block header: can't find magic id 0x{expected:08x} "
            f"at offset {position} (found 0x{found:08x})"
        )
        self.found = found
        self.expected = expected
        self.position = position


class MalformedRecordError(ChainParserError):
    """A block index record could not be fully decoded."""


class NotFoundError(ChainParserError):
    """Requested key is absent from the block index."""


class ReindexingError(ChainParserError):
    """The node is reindexing; block index lookups are not reliable."""


class ProtocolError(ChainParserError):
    """JSON-RPC call failed at the transport or returned an error object."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message if code is None else f"Code {code}: {message}")
        self.code = code
