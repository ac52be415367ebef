"""
Error taxonomy for the Square OAuth callback.

Every failure the callback can hit is one of the exceptions below. Fatal ones
carry the ``CallbackErrorCode`` that ends up in the redirect to the success
page; the recoverable ones are handled inside the pipeline and never reach the
user.
"""

from enum import Enum


class CallbackErrorCode(str, Enum):
    """
    Error codes carried by the ``error`` query parameter of the success page.

    Shared with the success page so both sides agree on the closed set of codes.
    """

    MISSING_CODE = "missing_code"
    MISSING_STATE = "missing_state"
    INVALID_STATE = "invalid_state"
    DATABASE_ERROR = "database_error"
    SERVER_CONFIGURATION = "server_configuration"
    TOKEN_EXCHANGE = "token_exchange"
    NO_LOCATIONS = "no_locations"
    SERVER_ERROR = "server_error"


class SquareOAuthError(Exception):
    """Base class for errors raised while completing a Square authorization."""

    error_code: CallbackErrorCode = CallbackErrorCode.SERVER_ERROR


class MissingParameter(SquareOAuthError):
    """The callback request did not carry ``code`` or ``state``."""

    def __init__(self, parameter: str) -> None:
        super().__init__(f"Missing required parameter: {parameter}")
        self.parameter = parameter
        self.error_code = (
            CallbackErrorCode.MISSING_CODE if parameter == "code" else CallbackErrorCode.MISSING_STATE
        )


class InvalidState(SquareOAuthError):
    """No pending authorization matches the state (forged, expired or replayed)."""

    error_code = CallbackErrorCode.INVALID_STATE


class StorageUnavailable(SquareOAuthError):
    """The pending authorization lookup could not be performed."""

    error_code = CallbackErrorCode.DATABASE_ERROR


class ServerConfigurationError(SquareOAuthError):
    """The Square client identity is not configured."""

    error_code = CallbackErrorCode.SERVER_CONFIGURATION


class TokenExchangeFailed(SquareOAuthError):
    """Square did not hand out tokens for the authorization code."""

    error_code = CallbackErrorCode.TOKEN_EXCHANGE


class NoLocationsFound(SquareOAuthError):
    """The merchant has no locations to attach the connection to."""

    error_code = CallbackErrorCode.NO_LOCATIONS


class LocationFetchDegraded(SquareOAuthError):
    """Listing locations failed; the merchant id stands in for the location id."""


class PersistenceFailed(SquareOAuthError):
    """The pending row update and connection upsert were rolled back."""

    error_code = CallbackErrorCode.DATABASE_ERROR


class UnhandledServerError(SquareOAuthError):
    """Wraps any exception the pipeline did not anticipate."""

    error_code = CallbackErrorCode.SERVER_ERROR
