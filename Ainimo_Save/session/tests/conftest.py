import logging

import pytest

from Ainimo_Save.save_shared import errors
from Ainimo_Save.save_db.storage import MemoryStorage
from Ainimo_Save.session.controller import PersistenceController


class ManualHandle:
    def __init__(self, when: float, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Virtual clock: callbacks run only when the test advances time."""

    def __init__(self):
        self.now = 0.0
        self.handles: list[ManualHandle] = []

    def call_later(self, delay, callback) -> ManualHandle:
        handle = ManualHandle(self.now + delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def active(self) -> list[ManualHandle]:
        return [h for h in self.handles if not h.cancelled and not h.fired]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = sorted((h for h in self.active if h.when <= target), key=lambda h: h.when)
            if not due:
                break
            handle = due[0]
            self.now = handle.when
            handle.fired = True
            handle.callback()
        self.now = target


class FlakyStorage(MemoryStorage):
    """MemoryStorage whose operations can be switched to fail."""

    def __init__(self):
        super().__init__()
        self.fail_get = False
        self.fail_set = False
        self.fail_delete = False
        self.deletes = 0

    async def get(self, key):
        if self.fail_get:
            raise errors.StorageError("get", "storage disabled")
        return await super().get(key)

    async def set(self, key, value):
        if self.fail_set:
            raise errors.StorageError("set", "quota exceeded")
        await super().set(key, value)

    async def delete(self, key):
        if self.fail_delete:
            raise errors.StorageError("delete", "storage disabled")
        self.deletes += 1
        await super().delete(key)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def storage():
    return FlakyStorage()


@pytest.fixture
def diagnostics():
    return logging.getLogger("ainimo.tests.persistence")


@pytest.fixture
def make_controller(storage, crypto_config, secret, scheduler, diagnostics):
    def _make(**overrides):
        kwargs = {
            "storage": storage,
            "crypto_config": crypto_config,
            "secret": secret,
            "scheduler": scheduler,
            "logger": diagnostics,
        }
        kwargs.update(overrides)
        return PersistenceController(**kwargs)
    return _make
