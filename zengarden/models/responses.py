from typing import Any, List, Optional


class TransactionResponse:
    """
    Uniform result of every in-memory operation.
    Carries either a payload or a non-empty list of error messages, never both.
    Callers must check is_successful() before reading the payload.
    """

    def __init__(self, payload: Any = None, messages: Optional[List[str]] = None):
        self.messages: List[str] = list(messages) if messages else []
        self.payload: Any = None if self.messages else payload

    @classmethod
    def ok(cls, payload: Any = None) -> "TransactionResponse":
        return cls(payload=payload)

    @classmethod
    def fail(cls, message: str) -> "TransactionResponse":
        return cls(messages=[message])

    def add_error_message(self, message: str):
        self.messages.append(message)
        self.payload = None

    def is_successful(self) -> bool:
        return not self.messages

    def first_error(self) -> str:
        return self.messages[0] if self.messages else ""

    def __repr__(self) -> str:
        if self.is_successful():
            return f"TransactionResponse(payload={self.payload!r})"
        return f"TransactionResponse(messages={self.messages!r})"
