"""Shared fixtures: stub delivery backends, a paused job scheduler and a clock."""

import threading
from datetime import datetime

import pytest
from apscheduler.schedulers.background import BackgroundScheduler

from daily_sms.backends import DeliveryBackend
from daily_sms.config import Config
from daily_sms.exceptions import DeliveryError, PersistenceError
from daily_sms.models import DeliveryReceipt
from daily_sms.persistence import JSONFilePersistenceLayer
from daily_sms.scheduler import DailyScheduler
from daily_sms.service import SMSService


class StubBackend(DeliveryBackend):
    """Records every send; optionally fails or translates addresses"""

    name = 'stub'

    def __init__(self, configured=True, translate=False, error=None, gate=None):
        self.configured = configured
        self.requires_address_translation = translate
        self.error = error
        self.gate = gate
        self.sent = []

    def is_configured(self):
        return self.configured

    def send(self, destination, body):
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.error is not None:
            raise self.error
        self.sent.append((destination, body))
        return DeliveryReceipt(backend=self.name, destination=destination, reference=f"stub-{len(self.sent)}")


def paused_scheduler():
    """A started BackgroundScheduler that computes run times but never fires"""
    scheduler = BackgroundScheduler()
    scheduler.start(paused=True)
    return scheduler


def make_daily_scheduler(clock):
    def factory(dispatch):
        return DailyScheduler(dispatch, scheduler=paused_scheduler(), now=clock)
    return factory


class Clock:
    """Settable wall clock"""

    def __init__(self, now):
        self.current = now

    def __call__(self):
        return self.current


class CountingStore:
    """Wraps a store and counts writes; can be told to fail them"""

    def __init__(self, inner):
        self.inner = inner
        self.message_saves = 0
        self.config_saves = 0
        self.fail_saves = False

    def load_messages(self):
        return self.inner.load_messages()

    def save_messages(self, messages):
        if self.fail_saves:
            raise PersistenceError("disk full")
        self.message_saves += 1
        self.inner.save_messages(messages)

    def load_config(self):
        return self.inner.load_config()

    def save_config(self, config):
        if self.fail_saves:
            raise PersistenceError("disk full")
        self.config_saves += 1
        self.inner.save_config(config)


@pytest.fixture
def file_store(tmp_path):
    return JSONFilePersistenceLayer(str(tmp_path / 'data'))


@pytest.fixture
def store(file_store):
    return CountingStore(file_store)


@pytest.fixture
def backend():
    return StubBackend()


@pytest.fixture
def clock():
    return Clock(datetime(2026, 10, 19, 8, 0, 0))


@pytest.fixture
def app_config(tmp_path):
    return Config(
        DATA_DIR=str(tmp_path / 'data'),
        DEFAULT_SEND_TIME='12:00',
        DEFAULT_CARRIER='att',
        DELIVERY_BACKEND='email_gateway',
        STORE_BACKEND='file'
    )


@pytest.fixture
def service(store, backend, app_config, clock):
    svc = SMSService(store, backend, app_config, scheduler_factory=make_daily_scheduler(clock))
    svc.start()
    yield svc
    svc.stop()


@pytest.fixture
def failing_backend():
    return StubBackend(error=DeliveryError("recipient rejected", backend='stub'))


@pytest.fixture
def gate():
    return threading.Event()
