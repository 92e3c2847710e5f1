"""Custom exceptions for the TCAPY signal bot.

The signal core raises only the input-related errors; the feed and chat
layers add their own. All live here to avoid circular imports between
sub-packages.
"""


class BotError(Exception):
    """Base exception for all bot errors."""


class EmptyInputError(BotError):
    """Raised when a required input sequence is empty and no safe default exists."""


class InvalidInputError(BotError):
    """Raised when an argument is malformed (e.g. a non-numeric percent change)."""


class PreconditionViolation(InvalidInputError):
    """Raised when a numeric precondition fails (e.g. current price <= 0)."""


class FeedUnavailableError(BotError):
    """Raised when the trade-history feed cannot be fetched after retries."""


class MarketDataError(BotError):
    """Raised when the quote aggregator API returns an error.

    Attributes:
        status: HTTP status code, if the failure came from an HTTP response.
        api_message: Error message reported by the API, if any.
    """

    def __init__(
        self,
        message: str,
        status: int | None = None,
        api_message: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.api_message = api_message


class CoinNotFoundError(MarketDataError):
    """Raised when the quote aggregator has no data for the requested symbol."""
