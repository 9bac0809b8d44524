from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy.orm import Session, sessionmaker

from .db import session_scope


class BaseRepository:
    """
    Shared plumbing for the repositories.
    Every public method takes an optional session: pass one to fold several calls into one transaction.
    """

    def __init__(self, session_factory: sessionmaker, logger=None):
        self._session_factory = session_factory
        self._logger = logger

    def _scope(self, session: Optional[Session] = None):
        return session_scope(self._session_factory, session, self._logger)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Opens a session shared by several repository calls; commits once at the end."""
        with self._scope() as s:
            yield s
