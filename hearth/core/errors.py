"""
Error taxonomy. Every kind is recoverable at turn granularity.
"""

from typing import Optional


class HearthError(Exception):
    """Base class for runtime errors that front-ends turn into a reply."""

    user_message = "Something went wrong on my end. Please try again."

    def reply(self) -> str:
        return self.user_message


class BackendUnavailable(HearthError):
    """The model call failed or timed out. The turn is not recorded."""

    def reply(self) -> str:
        return f"Sorry, I had trouble thinking about that. Error: {self}"


class StoreError(HearthError):
    """The store could not be read."""

    def reply(self) -> str:
        return f"I couldn't reach my database. Error: {self}"


class StoreWriteFailure(StoreError):
    """A durable write failed. The current turn is aborted."""

    def reply(self) -> str:
        return f"I couldn't save that. Error: {self}"


class MalformedDirective(HearthError):
    """One directive block could not be parsed. The rest of the turn proceeds."""

    def __init__(self, label: str, reason: str, raw: str = ""):
        super().__init__(f"{label}: {reason}")
        self.label = label
        self.reason = reason
        self.raw = raw


class InvalidCronExpression(HearthError):
    """A cron expression that does not describe a valid 5-field schedule."""

    def __init__(self, expression: str, reason: Optional[str] = None):
        message = f"Invalid cron expression '{expression}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.expression = expression
        self.reason = reason
