"""Errors raised while building a claim report."""


class ReportError(Exception):
    """Base error carrying a message and, when known, the underlying cause."""

    status_code = 500

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause

    def to_body(self) -> dict[str, str]:
        """Structured failure body."""
        body = {"message": self.message}
        if self.cause is not None:
            body["error"] = str(self.cause)
        return body


class RequestRejected(ReportError):
    """Request is missing required input; nothing was computed."""

    status_code = 400


class ReferenceNotFound(ReportError):
    """Agency or route referenced by the request does not exist."""

    status_code = 404

    def __init__(self, kind: str, ref_id: object) -> None:
        super().__init__(f"{kind} {ref_id} not found")
        self.kind = kind
        self.ref_id = ref_id
