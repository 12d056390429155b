"""
Application Exceptions

Exchange adapters raise these at the HTTP seam; the aggregator converts them
into empty per-exchange results so a single exchange never fails a round.
"""

from typing import Optional


class FundingMonitorError(Exception):
    """Base class for all application errors."""


class ExchangeRequestError(FundingMonitorError):
    """
    An exchange endpoint could not be read.

    Raised for non-2xx responses and for bodies that are not valid JSON.

    Attributes:
        exchange: Exchange name (lowercase)
        url: Requested URL
        status: HTTP status code, if a response was received
    """

    def __init__(self, exchange: str, url: str, status: Optional[int] = None, detail: str = ""):
        self.exchange = exchange
        self.url = url
        self.status = status
        message = f"{exchange}: request to {url} failed"
        if status is not None:
            message += f" (HTTP {status})"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class ExchangeNotFoundError(FundingMonitorError, ValueError):
    """Requested exchange is not registered."""
