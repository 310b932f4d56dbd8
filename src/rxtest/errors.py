"""Harness error types and exceptions.

Engine calls never raise; they return status codes. The exceptions here are
the harness's own failures, each carrying the exact diagnostic line that is
written to the output stream.
"""


class RxTestError(Exception):
    """Base class for all harness errors."""

    def __init__(self, message: str = ""):
        self.message = message
        super().__init__(message)


class ModifierError(RxTestError):
    """A modifier list could not be decoded."""


class EncodingError(RxTestError):
    """A string could not be converted to the active code unit width."""

    width = 0


class MalformedUTF8Error(EncodingError):
    """The input is not well-formed UTF-8."""

    def __init__(self, width: int, offset: int = 0):
        self.width = width
        self.offset = offset
        super().__init__(
            f"** Failed: invalid UTF-8 string cannot be converted to "
            f"{width}-bit string")


class ValueTooLargeForUTFError(EncodingError):
    """A character value is beyond the Unicode ceiling."""

    def __init__(self, value: int = 0):
        self.value = value
        super().__init__(
            "** Failed: character value greater than 0x10ffff cannot be "
            "converted to UTF")


class ValueTooLargeNonUTFError(EncodingError):
    """A character value does not fit in a 16-bit unit."""

    def __init__(self, value: int = 0):
        self.value = value
        super().__init__(
            "** Failed: character value greater than 0xffff cannot be "
            "converted to 16-bit in non-UTF mode")


class DataLineError(RxTestError):
    """A data line could not be decoded; the line is abandoned."""


class AbortRun(RxTestError):
    """The whole run must stop with a failure status."""


class UnexpectedEndOfInput(AbortRun):
    """Input ended inside a pattern."""

    def __init__(self, message: str = "** Unexpected EOF"):
        super().__init__(message)
