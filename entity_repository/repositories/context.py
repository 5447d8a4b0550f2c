from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterable, Iterator, Optional, Union

from sqlalchemy import Column, Connection, Executable, Select, event, inspect, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session, make_transient, make_transient_to_detached
from sqlalchemy.orm.attributes import flag_modified

from entity_repository.db.session import get_async_session_factory, get_session_factory

logger = logging.getLogger(__name__)


def _attach(entity: Any) -> bool:
    """
    Turn a transient instance that already carries its primary key into a
    detached one, so the session treats it as an existing row.

    Returns True when the instance was converted.
    """
    state = inspect(entity)
    if state.transient and None not in state.mapper.primary_key_from_instance(entity):
        make_transient_to_detached(entity)
        return True
    return False


def _as_new(entity: Any) -> None:
    """Drop the identity of a detached instance so the session inserts it."""
    if inspect(entity).detached:
        make_transient(entity)


def _replace_columns(entity: Any, fill_unset: bool) -> None:
    """
    Mark every non-key column as modified so the UPDATE rewrites the whole record.

    With ``fill_unset`` the columns the caller never assigned are written too:
    a scalar column default is used when there is one, NULL when the column has
    no default at all. Columns filled by the store (server defaults, onupdate
    callables) are left to the store.
    """
    state = inspect(entity)
    primary_keys = set(state.mapper.primary_key)
    for prop in state.mapper.column_attrs:
        column = prop.columns[0]
        if not isinstance(column, Column) or column in primary_keys:
            continue
        if prop.key not in state.dict:
            if not fill_unset:
                continue
            if column.default is not None and column.default.is_scalar:
                setattr(entity, prop.key, column.default.arg)
            elif column.default is None and column.server_default is None:
                setattr(entity, prop.key, None)
            else:
                continue
        flag_modified(entity, prop.key)


class _RowsWritten:
    """
    Rows written by one commit.

    Inserts and updates are counted from the staged working set: the flush
    raises when an INSERT fails or an UPDATE matches a different number of
    rows. Deletes are counted from the cursor rowcount, since a DELETE that
    matches nothing only warns.
    """

    def __init__(self, session: Union[Session, AsyncSession]) -> None:
        self.staged = len(session.new) + sum(1 for obj in session.dirty if session.is_modified(obj))
        self.deleted = 0

    @property
    def total(self) -> int:
        return self.staged + self.deleted

    def _after_cursor_execute(self, conn, cursor, statement, parameters, context, executemany) -> None:
        if context is None or not context.isdelete:
            return
        rowcount = cursor.rowcount
        if rowcount < 0:
            # driver cannot tell; assume every parameter set matched
            rowcount = len(parameters) if executemany else 1
        self.deleted += rowcount

    @contextmanager
    def listening(self, connection: Connection) -> Iterator["_RowsWritten"]:
        listener = self._after_cursor_execute
        event.listen(connection, "after_cursor_execute", listener)
        try:
            yield self
        finally:
            event.remove(connection, "after_cursor_execute", listener)


class DataContext:
    """
    A blocking unit of work around one Session.

    One context backs exactly one repository call and is closed when the call
    ends. Constructed without arguments it opens a session from the global
    session factory configured by entity_repository.db.config.Settings.

    Usage:
        with DataContext() as context:
            items = context.scalars(context.query(Item)).all()
    """

    def __init__(
        self,
        session: Optional[Session] = None,
        *,
        session_factory: Optional[Callable[[], Session]] = None,
    ) -> None:
        if session is None:
            session = (session_factory or get_session_factory())()
        self.session = session

    def __enter__(self) -> "DataContext":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def query(self, entity_type: type) -> Select:
        """Base statement over the working set of ``entity_type``."""
        return select(entity_type)

    def execute(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute a SQLAlchemy statement."""
        return self.session.execute(statement, params or {})

    def scalars(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute and return scalars."""
        return self.execute(statement, params).scalars()

    def scalar(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute and return the first column of the first row."""
        return self.execute(statement, params).scalar()

    def add_range(self, entities: Iterable[Any]) -> None:
        """Stage entities for insertion. Detached instances are inserted as new rows."""
        entities = list(entities)
        for entity in entities:
            _as_new(entity)
        self.session.add_all(entities)

    def remove_range(self, entities: Iterable[Any]) -> None:
        """Stage entities for deletion."""
        for entity in entities:
            _attach(entity)
            self.session.delete(entity)

    def update_range(self, entities: Iterable[Any]) -> None:
        """Stage entities as fully modified."""
        for entity in entities:
            constructed = _attach(entity)
            self.session.add(entity)
            _replace_columns(entity, fill_unset=constructed)

    def save_changes(self) -> int:
        """Commit pending changes and return the number of rows written."""
        rows = _RowsWritten(self.session)
        with rows.listening(self.session.connection()):
            self.session.commit()
        logger.debug("Committed %d row(s)", rows.total)
        return rows.total

    def close(self) -> None:
        """Release the session. Uncommitted work is rolled back."""
        self.session.close()


class AsyncDataContext:
    """
    Non-blocking counterpart of DataContext around one AsyncSession.

    Usage:
        async with AsyncDataContext() as context:
            items = (await context.scalars(context.query(Item))).all()
    """

    def __init__(
        self,
        session: Optional[AsyncSession] = None,
        *,
        session_factory: Optional[Callable[[], AsyncSession]] = None,
    ) -> None:
        if session is None:
            session = (session_factory or get_async_session_factory())()
        self.session = session

    async def __aenter__(self) -> "AsyncDataContext":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def query(self, entity_type: type) -> Select:
        """Base statement over the working set of ``entity_type``."""
        return select(entity_type)

    async def execute(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute a SQLAlchemy statement."""
        return await self.session.execute(statement, params or {})

    async def scalars(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute and return scalars."""
        result = await self.execute(statement, params)
        return result.scalars()

    async def scalar(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute and return the first column of the first row."""
        result = await self.execute(statement, params)
        return result.scalar()

    def add_range(self, entities: Iterable[Any]) -> None:
        """Stage entities for insertion. Detached instances are inserted as new rows."""
        entities = list(entities)
        for entity in entities:
            _as_new(entity)
        self.session.add_all(entities)

    async def remove_range(self, entities: Iterable[Any]) -> None:
        """Stage entities for deletion. May load cascaded relations."""
        for entity in entities:
            _attach(entity)
            await self.session.delete(entity)

    def update_range(self, entities: Iterable[Any]) -> None:
        """Stage entities as fully modified."""
        for entity in entities:
            constructed = _attach(entity)
            self.session.add(entity)
            _replace_columns(entity, fill_unset=constructed)

    async def save_changes(self) -> int:
        """Commit pending changes and return the number of rows written."""
        rows = _RowsWritten(self.session)
        connection = await self.session.connection()
        with rows.listening(connection.sync_connection):
            await self.session.commit()
        logger.debug("Committed %d row(s)", rows.total)
        return rows.total

    async def close(self) -> None:
        """Release the session. Uncommitted work is rolled back."""
        await self.session.close()
