"""Failure taxonomy for capture, resolution, overlay and store operations."""


class ScholiaError(Exception):
    """Base class for every scholia failure."""


class CaptureRejected(ScholiaError):
    """Selection is empty, outside the content, or inside a highlight."""


class ResolutionNotFound(ScholiaError):
    """Anchor text is absent from the candidate blocks."""


class WrapFailed(ScholiaError):
    """A range could not be wrapped (boundaries do not share a parent)."""


class StoreRequestFailed(ScholiaError):
    """A create/update/delete/list call to the comment store failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class CommentNotFound(StoreRequestFailed):
    """The store has no comment with the requested id."""

    def __init__(self, comment_id: object):
        super().__init__(f"Comment {comment_id} not found", status_code=404)
        self.comment_id = comment_id


class PreconditionViolation(ScholiaError):
    """An operation referenced an id with no matching highlight."""
