# decorators.py
import functools

import asyncpg
import psycopg

from pgmq_client.errors import BackingStoreError, PgmqError

SYNC_DRIVER_ERRORS = (psycopg.Error, OSError)
ASYNC_DRIVER_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


def scoped_connection(func):
    """Run a method on a connection borrowed from ``self.pool`` unless ``conn`` is passed.

    The connection goes back to the pool on every exit path. Driver errors
    are re-raised as :class:`BackingStoreError`.
    """

    @functools.wraps(func)
    def wrapper(self, *args, conn=None, **kwargs):
        try:
            if conn is not None:
                return func(self, *args, conn=conn, **kwargs)
            with self.pool.connection() as conn:
                return func(self, *args, conn=conn, **kwargs)
        except PgmqError:
            raise
        except SYNC_DRIVER_ERRORS as e:
            self.logger.error(f"{func.__name__} failed with exception: {e}")
            raise BackingStoreError.from_driver_error(e) from e

    return wrapper


def async_scoped_connection(func):
    """Asynchronous counterpart of :func:`scoped_connection` for asyncpg pools."""

    @functools.wraps(func)
    async def wrapper(self, *args, conn=None, **kwargs):
        try:
            if conn is not None:
                return await func(self, *args, conn=conn, **kwargs)
            async with self.pool.acquire() as conn:
                return await func(self, *args, conn=conn, **kwargs)
        except PgmqError:
            raise
        except ASYNC_DRIVER_ERRORS as e:
            self.logger.error(f"{func.__name__} failed with exception: {e}")
            raise BackingStoreError.from_driver_error(e) from e

    return wrapper


def transaction(func):
    """Decorator to run a function within a database transaction.

    The decorated function receives the client first and gets ``conn``
    injected; pass it on to each operation to share the transaction.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        if "conn" in kwargs:
            return func(*args, **kwargs)

        client = kwargs.get("pgmq") or args[0]
        try:
            with client.pool.connection() as conn:
                with conn.transaction():
                    client.logger.debug(f"Transaction started with conn: {conn}")
                    try:
                        kwargs["conn"] = conn
                        result = func(*args, **kwargs)
                        client.logger.debug(f"Transaction completed with conn: {conn}")
                        return result
                    except Exception as e:
                        client.logger.error(f"Transaction failed with exception: {e}, rolling back.")
                        raise
        except PgmqError:
            raise
        except SYNC_DRIVER_ERRORS as e:
            raise BackingStoreError.from_driver_error(e) from e

    return wrapper


def async_transaction(func):
    """Asynchronous decorator to run a function within a database transaction."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        if "conn" in kwargs:
            return await func(*args, **kwargs)

        client = kwargs.get("pgmq") or args[0]
        try:
            async with client.pool.acquire() as conn:
                async with conn.transaction():
                    client.logger.debug(f"Transaction started with conn: {conn}")
                    try:
                        kwargs["conn"] = conn
                        result = await func(*args, **kwargs)
                        client.logger.debug(f"Transaction completed with conn: {conn}")
                        return result
                    except Exception as e:
                        client.logger.error(f"Transaction failed with exception: {e}, rolling back.")
                        raise
        except PgmqError:
            raise
        except ASYNC_DRIVER_ERRORS as e:
            raise BackingStoreError.from_driver_error(e) from e

    return wrapper
