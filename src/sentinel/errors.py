class SentinelError(Exception):
    """Base class for every error raised by sentinel."""


class ParseError(SentinelError):
    """No schedule could be extracted from the given input.

    The message is human-readable and may span several lines.
    """


class ValidationError(SentinelError):
    """A candidate schedule broke one or more rules."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("\n".join(self.errors) or "Invalid schedule")


class ExternalCallError(SentinelError):
    """A collaborator (persistence, AI, mail) failed."""

    def __init__(self, collaborator: str, message: str):
        self.collaborator = collaborator
        super().__init__(f"{collaborator}: {message}")
