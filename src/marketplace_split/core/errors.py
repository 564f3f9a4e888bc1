"""Errors raised by the split payment workflow, mapped to HTTP statuses."""


class SplitPaymentError(Exception):
    """Base class: carries the HTTP status and a stable error code."""

    status_code = 500
    error_code = "internal_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.error_code)
        self.message = message or self.error_code


class InvalidRequest(SplitPaymentError):
    status_code = 400
    error_code = "invalid_request"


class Forbidden(SplitPaymentError):
    status_code = 403
    error_code = "forbidden"


class SellerNotFound(SplitPaymentError):
    """No onboarded credential for the product; needs operator action."""

    status_code = 404
    error_code = "seller_not_found"


class ExchangeFailed(SplitPaymentError):
    error_code = "exchange_failed"


class PreferenceCreationFailed(SplitPaymentError):
    error_code = "preference_creation_failed"


class GatewayUnavailable(SplitPaymentError):
    error_code = "gateway_unavailable"


class RelayFailed(SplitPaymentError):
    error_code = "relay_failed"


class StoreUnavailable(SplitPaymentError):
    error_code = "store_unavailable"
