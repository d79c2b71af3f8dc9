import logging
import random
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, TypeVar

from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlmodel import Session

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UnitOfWork:
    """
    One atomic storage transaction: begin, commit or abort.

    ``run`` executes a callable inside a fresh transaction and retries the
    whole callable when the storage layer reports a transient fault
    (``OperationalError``: lost connection, lock timeout, serialization
    failure). Every other exception aborts and propagates unchanged.
    """

    def __init__(
        self,
        engine: Engine,
        max_attempts: int = 3,
        backoff: float = 0.05,
    ):
        self.engine = engine
        self.max_attempts = max(1, max_attempts)
        self.backoff = backoff
        self.session: Optional[Session] = None

    def begin(self) -> Session:
        if self.session is not None:
            raise RuntimeError("Unit of work already started")
        self.session = Session(self.engine, expire_on_commit=False)
        self.session.begin()
        return self.session

    def commit(self) -> None:
        self.session.commit()
        self._close()

    def abort(self) -> None:
        if self.session is None:
            return
        try:
            self.session.rollback()
        finally:
            self._close()

    def _close(self) -> None:
        if self.session is not None:
            self.session.close()
            self.session = None

    def run(self, work: Callable[[Session], T]) -> T:
        for attempt in range(1, self.max_attempts + 1):
            session = self.begin()
            try:
                result = work(session)
                self.commit()
                return result

            except OperationalError as e:
                self.abort()
                if attempt == self.max_attempts:
                    logger.error(f"Transaction failed after {attempt} attempts: {e}")
                    raise

                sleep = self.backoff * (2 ** (attempt - 1)) + random.random() * self.backoff
                logger.warning(
                    f"Transient storage fault (attempt {attempt}/{self.max_attempts}), "
                    f"retrying in {sleep:.2f}s: {e}"
                )
                time.sleep(sleep)

            except Exception:
                self.abort()
                raise

    @contextmanager
    def read(self) -> Iterator[Session]:
        with Session(self.engine, expire_on_commit=False) as session:
            yield session
