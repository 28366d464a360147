"""Models exchanged between the stream parser, the forwarder and the poll loop."""

from typing import Any

from pydantic import BaseModel

Record = dict[str, Any]


class ContinuationState(BaseModel):
    """
    Continuation links observed at the root of one response body.

    Attributes:
        next_link (str): Link to the next window of the same logical poll. Empty if absent.
        delta_link (str): Link returning everything after this point, used for the next poll. Empty if absent.
    """

    next_link: str = ""
    delta_link: str = ""

    @property
    def has_next(self) -> bool:
        return bool(self.next_link)

    @property
    def has_delta(self) -> bool:
        return bool(self.delta_link)

    @property
    def is_terminal(self) -> bool:
        """True if the server offered no way to continue."""
        return not self.next_link and not self.delta_link


class ParseResult(BaseModel):
    """
    One unit emitted by the stream parser.

    Either a record (is_final False) or the single final unit of a body
    (is_final True) carrying the continuation links.
    """

    record: Record | None = None
    is_final: bool = False
    continuation: ContinuationState | None = None
