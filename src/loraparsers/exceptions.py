"""Parser exception classes."""

from __future__ import annotations


class ParserError(Exception):
    """Base exception for all parser errors."""


class ContainerDecodeError(ParserError):
    """M-Bus container payload could not be decoded into data records."""


class RecordContractError(ParserError):
    """Decoded data record does not have the shape the interpreter relies on."""
