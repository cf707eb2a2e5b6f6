from contextlib import asynccontextmanager, contextmanager

import pytest


class FakeAsyncConnection:
    """Replays canned results and records every call made to it."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []

    def _next(self, method, query, args):
        self.calls.append((method, query, args))
        result = self.results.pop(0) if self.results else None
        if isinstance(result, BaseException):
            raise result
        return result

    async def fetch(self, query, *args):
        return self._next("fetch", query, args) or []

    async def fetchrow(self, query, *args):
        return self._next("fetchrow", query, args)

    async def fetchval(self, query, *args):
        return self._next("fetchval", query, args)

    async def execute(self, query, *args):
        return self._next("execute", query, args)

    @asynccontextmanager
    async def transaction(self):
        self.calls.append(("transaction", None, ()))
        yield


class FakeAsyncPool:
    def __init__(self, conn):
        self.conn = conn
        self.acquired = 0
        self.released = 0
        self.closed = False

    @asynccontextmanager
    async def acquire(self):
        self.acquired += 1
        try:
            yield self.conn
        finally:
            self.released += 1

    async def close(self):
        self.closed = True


class FakeCursor:
    def __init__(self, result):
        self.result = result

    def fetchone(self):
        return self.result

    def fetchall(self):
        return self.result or []


class FakeConnection:
    def __init__(self, *results):
        self.results = list(results)
        self.calls = []

    def execute(self, query, params=None):
        self.calls.append((query, params))
        result = self.results.pop(0) if self.results else None
        if isinstance(result, BaseException):
            raise result
        return FakeCursor(result)

    @contextmanager
    def transaction(self):
        self.calls.append(("transaction", None))
        yield


class FakePool:
    def __init__(self, conn):
        self.conn = conn
        self.acquired = 0
        self.released = 0
        self.closed = False

    @contextmanager
    def connection(self):
        self.acquired += 1
        try:
            yield self.conn
        finally:
            self.released += 1

    def close(self):
        self.closed = True


@pytest.fixture
def make_async_pool():
    def make(*results):
        return FakeAsyncPool(FakeAsyncConnection(*results))

    return make


@pytest.fixture
def make_pool():
    def make(*results):
        return FakePool(FakeConnection(*results))

    return make
