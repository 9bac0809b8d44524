class RepositoryError(RuntimeError):
    """Base class for durable-layer failures raised by the repositories."""


class RecordNotFoundError(RepositoryError):
    """The row a mutation had to lock does not exist. Rows are never created implicitly."""


class InvalidQuantityError(RepositoryError, ValueError):
    """A quantity argument or a computed quantity is out of range."""


class InsufficientFundsError(RepositoryError):
    """A gold debit would leave a negative balance."""
