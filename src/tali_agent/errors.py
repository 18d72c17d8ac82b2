"""Error taxonomy shared by the dialog engine and its collaborators."""


class TaliError(Exception):
    """Base class for all agent errors."""


class ParseError(TaliError):
    """A slot answer could not be parsed (e.g. a non-numeric amount)."""

    def __init__(self, text: str, slot: str) -> None:
        super().__init__(f"Could not parse {slot!r} from {text!r}")
        self.text = text
        self.slot = slot


class ServiceLookupError(TaliError):
    """The intent classifier or the account service failed.

    Recoverable at turn level: the user gets an apology and may retry.
    """


class PersistenceError(TaliError):
    """The conversation state store could not be read or written."""
