"""Error taxonomy of the delta tracker.

Library code raises these and never terminates the process. The runner is the
outermost caller and decides to exit.
"""


class TrackerError(Exception):
    """Base class for every error raised by the tracker."""


class MalformedStructure(TrackerError):
    """The response body does not match the expected collection grammar."""


class RecordDecodeFailed(TrackerError):
    """One element of the collection array could not be decoded into a record."""

    def __init__(self, message: str, index: int | None = None):
        super().__init__(message)
        self.index = index


class TransportInterrupted(TrackerError):
    """Reading the inbound body or writing the outbound stream failed."""


class UnexpectedStatus(TrackerError):
    """The server answered with a status code outside the success range."""

    def __init__(self, method: str, url: str, status_code: int, body: str = ""):
        self.method = method
        self.url = url
        self.status_code = status_code
        self.body = body
        super().__init__(f"{method} {url} failed with status {status_code}: {body}")


class BufferClosed(TrackerError):
    """A write was attempted on a stream buffer that was already closed."""


class UnsupportedServerVersion(TrackerError):
    """The source server is too old to support change tracking."""
