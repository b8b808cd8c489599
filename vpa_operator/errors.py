from typing import Optional


class OperatorError(Exception):
    """ Base class for errors raised by the operator's cluster collaborators. """


class FetchError(OperatorError):
    """ A listing call failed; the current cycle must be abandoned. """

    def __init__(self, kind: str, cause: Exception):
        self.kind = kind
        self.cause = cause
        super().__init__(f"failed to fetch {kind}: {cause}")


class ApplyError(OperatorError):
    """ A single create or delete call failed. """

    def __init__(self, action: str, name: str, namespace: str, kind: str = "",
                 status: Optional[int] = None, reason: str = ""):
        self.action = action
        self.name = name
        self.namespace = namespace
        self.kind = kind
        self.status = status
        self.reason = reason
        super().__init__(
            f"failed to {action} VPA {namespace}/{name} (kind={kind or '?'}, status={status}): {reason}"
        )
