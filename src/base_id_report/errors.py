from enum import Enum


class ErrorKind(str, Enum):
    ADDRESS_NOT_FOUND = 'AddressNotFound'
    NETWORK_FAILURE = 'NetworkFailure'
    NFT_FETCH_FAILED = 'NFTFetchFailed'
    FORMATTING_FAILURE = 'FormattingFailure'
    BLOCK_LOOKUP_FAILURE = 'BlockLookupFailure'
    TRANSFER_LOOKUP_FAILURE = 'TransferLookupFailure'
    TOKEN_INSPECTION_FAILURE = 'TokenInspectionFailure'


class ReportError(RuntimeError):
    """A failure that ends the report for the current request."""

    kind = ErrorKind.NETWORK_FAILURE


class AddressNotFoundError(ReportError):
    kind = ErrorKind.ADDRESS_NOT_FOUND


class NetworkFailureError(ReportError):
    kind = ErrorKind.NETWORK_FAILURE


class NFTFetchFailedError(NetworkFailureError):
    kind = ErrorKind.NFT_FETCH_FAILED
