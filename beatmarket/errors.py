"""Errors raised by the marketplace ledger"""


class LedgerError(Exception):
    """Base class for ledger failures"""


class InvalidInput(LedgerError):
    """Missing or malformed fields, self-follow, bad identifiers"""


class NotFound(LedgerError):
    """Beat or user does not exist"""


class Forbidden(LedgerError):
    """Requester does not own the beat"""


class StorageFailure(LedgerError):
    """Document store or media store call failed"""
