class StickyBoardError(Exception):
    """Base class for every failure the board services and client surface."""

    message = "Something went wrong."

    def __init__(self, reason: str = None, details: dict = None):
        self.reason = reason or self.message
        self.details = details or {}
        super().__init__(self.reason)


class CredentialExpired(StickyBoardError):
    message = "Token has expired."


class CredentialInvalid(StickyBoardError):
    message = "Invalid token."


class Forbidden(StickyBoardError):
    message = "Not allowed."


class NotFound(StickyBoardError):
    message = "Not found."


class ValidationFailed(StickyBoardError):
    message = "Invalid input."


class ChannelUnreachable(StickyBoardError):
    message = "WebSocket connection failed."


class GatewayError(StickyBoardError):
    message = "Something went wrong fetching the data."
