from http import HTTPStatus


class ContinuityError(Exception):
    """Base class of every error raised by the subscription engine, carries the HTTP status it maps to."""

    status_code: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR
    default_message = "Internal error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotSubscribedError(ContinuityError):
    status_code = HTTPStatus.NOT_FOUND
    default_message = "User is not subscribed"


class WalletMismatchError(ContinuityError):
    status_code = HTTPStatus.BAD_REQUEST
    default_message = "Subscription wallet differs from one used previously"


class MalformedPreSignedTxError(ContinuityError):
    status_code = HTTPStatus.BAD_REQUEST
    default_message = "Malformed pre-signed subscription transaction"


class LedgerError(ContinuityError):
    status_code = HTTPStatus.BAD_GATEWAY
    default_message = "Ledger network error"


class LedgerUnreachableError(LedgerError):
    status_code = HTTPStatus.SERVICE_UNAVAILABLE
    default_message = "Ledger network is unreachable"


class LedgerTimeoutError(LedgerError):
    status_code = HTTPStatus.GATEWAY_TIMEOUT
    default_message = "Ledger network did not answer in time"


class SubmissionRejectedError(LedgerError):
    status_code = HTTPStatus.BAD_GATEWAY
    default_message = "Ledger network rejected the transactions batch"
