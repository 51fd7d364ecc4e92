"""
Data access layer.

A thin wrapper over the SQLAlchemy session exposing the primitives the domain
services are written against: select / insert / update / delete / custom, plus
a transactional scope. Table and column names are resolved against the
declared metadata, values always travel as bound parameters.

Services receive a Store explicitly; blueprints obtain the request's instance
through get_store().
"""
import time
from contextlib import contextmanager

from flask import current_app, g
from sqlalchemy import bindparam, select, text
from sqlalchemy.exc import SQLAlchemyError

from dairyops.exceptions import StoreError
from dairyops.extensions import db

SLOW_QUERY_SECONDS = 1.0


class Store:
    def __init__(self, session, metadata=None):
        self.session = session
        self.metadata = metadata if metadata is not None else db.metadata
        self._depth = 0

    # ============== schema lookup ==============

    def table(self, name):
        try:
            return self.metadata.tables[name]
        except KeyError:
            raise StoreError(f'Unknown table: {name}')

    def _column(self, table, name):
        try:
            return table.c[name]
        except KeyError:
            raise StoreError(f'Unknown column: {table.name}.{name}')

    def _where(self, table, filter):
        clauses = []
        for key, value in (filter or {}).items():
            column = self._column(table, key)
            if value is None:
                clauses.append(column.is_(None))
            elif isinstance(value, (list, tuple, set)):
                clauses.append(column.in_(list(value)))
            else:
                clauses.append(column == value)
        return clauses

    def _order(self, table, order_by):
        """Parse 'created_at DESC, id' into ORDER BY clauses"""
        clauses = []
        for chunk in (order_by or '').split(','):
            tokens = chunk.split()
            if not tokens:
                continue
            column = self._column(table, tokens[0])
            direction = tokens[1].lower() if len(tokens) > 1 else 'asc'
            if direction not in ('asc', 'desc'):
                raise StoreError(f'Invalid sort direction: {tokens[1]}')
            clauses.append(column.desc() if direction == 'desc' else column.asc())
        return clauses

    def _check_fields(self, table, fields):
        for key in fields:
            self._column(table, key)

    # ============== execution ==============

    def _execute(self, statement, params=None):
        started = time.perf_counter()
        try:
            result = self.session.execute(statement, params or {})
        except SQLAlchemyError as e:
            current_app.logger.error(f'Query execution failed: {e}')
            raise StoreError('Database operation failed') from e

        elapsed = time.perf_counter() - started
        if elapsed > SLOW_QUERY_SECONDS:
            current_app.logger.warning(f'Slow query detected ({elapsed * 1000:.0f}ms): {statement}')
        return result

    @staticmethod
    def _rows(result):
        if not result.returns_rows:
            return []
        return [dict(row) for row in result.mappings()]

    # ============== primitives ==============

    def select(self, table, columns='*', filter=None, order_by=None, limit=None, lock=False):
        """`lock` takes row locks (SELECT ... FOR UPDATE) until the transaction ends"""
        t = self.table(table)
        if not columns or columns == '*':
            cols = list(t.c)
        else:
            names = columns.split(',') if isinstance(columns, str) else columns
            cols = [self._column(t, name.strip()) for name in names]

        stmt = select(*cols).where(*self._where(t, filter)).order_by(*self._order(t, order_by))
        if limit:
            stmt = stmt.limit(int(limit))
        if lock:
            stmt = stmt.with_for_update()
        return self._rows(self._execute(stmt))

    def insert(self, table, fields):
        t = self.table(table)
        self._check_fields(t, fields)
        stmt = t.insert().values(dict(fields)).returning(*t.c)
        return self._rows(self._execute(stmt))[0]

    def update(self, table, filter, fields):
        t = self.table(table)
        if not filter:
            raise StoreError(f'Refusing unscoped update on {table}')
        self._check_fields(t, fields)
        stmt = t.update().where(*self._where(t, filter)).values(dict(fields)).returning(*t.c)
        return self._rows(self._execute(stmt))

    def delete(self, table, filter):
        t = self.table(table)
        if not filter:
            raise StoreError(f'Refusing unscoped delete on {table}')
        stmt = t.delete().where(*self._where(t, filter))
        return self._execute(stmt).rowcount or 0

    def custom(self, sql, params=None):
        """
        Run a textual statement with named parameters (:name), or a Core
        statement. List and tuple parameters are expanded for IN (...).
        """
        params = dict(params or {})
        if isinstance(sql, str):
            stmt = text(sql)
            expanding = [bindparam(key, expanding=True)
                         for key, value in params.items() if isinstance(value, (list, tuple))]
            if expanding:
                stmt = stmt.bindparams(*expanding)
        else:
            stmt = sql
        return self._rows(self._execute(stmt, params))

    def first(self, table, filter, columns='*', lock=False):
        rows = self.select(table, columns, filter, limit=1, lock=lock)
        return rows[0] if rows else None

    # ============== transactions ==============

    @contextmanager
    def transaction(self):
        """
        Unit of work: commit on success, roll back on any exception.
        A nested call joins the outer transaction.
        """
        if self._depth:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        self._depth = 1
        try:
            yield self
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            current_app.logger.error(f'Transaction failed: {e}')
            raise StoreError('Database transaction failed') from e
        except Exception:
            self.session.rollback()
            raise
        finally:
            self._depth = 0

    def ping(self):
        return self.custom('SELECT 1 AS health_check')


def get_store():
    """Store bound to the current application context's session"""
    if 'store' not in g:
        g.store = Store(db.session)
    return g.store
