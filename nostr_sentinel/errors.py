"""Exception hierarchy for nostr_sentinel.

Input validation errors are fatal and raised before any relay I/O. Codec and
parse errors are raised per event; callers that scan many events catch them
per event (see ``nostr_sentinel.query``).
"""

from __future__ import annotations


class SentinelError(Exception):
    """Base class of all errors raised by this package."""


class InputValidationError(SentinelError, ValueError):
    """Bad user input (precision, duration, identity, config)."""


class CodecError(SentinelError, ValueError):
    """Geohash encode/decode failure."""


class InvalidPrecision(CodecError, InputValidationError):
    def __init__(self, precision: object, max_precision: int = 12) -> None:
        super().__init__(f"geohash precision must be in 1..{max_precision}, got {precision!r}")
        self.precision = precision


class InvalidCoordinate(CodecError):
    pass


class MalformedGeohash(CodecError):
    pass


class InvalidDuration(InputValidationError):
    pass


class InvalidConfig(InputValidationError):
    pass


class InvalidIdentity(InputValidationError):
    pass


class InvalidRecipient(InvalidIdentity):
    pass


class ParseError(SentinelError, ValueError):
    """Structural failure while turning an event into a LocationRecord."""


class MissingTag(ParseError):
    def __init__(self, tag: str) -> None:
        super().__init__(f"missing {tag!r} tag")
        self.tag = tag


class WrongKind(ParseError):
    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"expected kind {expected}, got kind {actual}")
        self.expected = expected
        self.actual = actual


class MalformedPayload(ParseError):
    pass


class DecryptionFailure(SentinelError):
    pass


class DeliveryFailure(SentinelError):
    pass
