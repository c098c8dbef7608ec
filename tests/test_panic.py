from __future__ import annotations

import asyncio

import pytest

from safetrail.core.dispatcher import AlertDispatcher
from safetrail.core.panic import DEFAULT_PANIC_MESSAGE, PanicTrigger
from safetrail.errors import DeliveryError
from safetrail.models.alert import AlertCategory, AlertSeverity
from safetrail.models.location import LocationSample
from safetrail.utils.alert_client import AlertSink

from conftest import FakeSink


class GatedSink(AlertSink):
    """Holds each send until its gate is opened."""

    def __init__(self) -> None:
        self.gates: list[asyncio.Event] = []
        self.payloads: list[dict] = []

    async def send_alert(self, payload: dict) -> None:
        gate = asyncio.Event()
        self.gates.append(gate)
        await gate.wait()
        self.payloads.append(payload)


async def test_send_panic_delivers_before_returning(dispatcher: AlertDispatcher, sink: FakeSink) -> None:
    panic = PanicTrigger(dispatcher)

    alert = await panic.send_panic(LocationSample(latitude=12.34, longitude=56.78))

    assert alert.category == AlertCategory.PANIC_BUTTON
    assert alert.severity == AlertSeverity.HIGH
    assert alert.message == DEFAULT_PANIC_MESSAGE
    assert panic.sending is False
    assert sink.payloads[0]["type"] == "PANIC_BUTTON"
    assert sink.payloads[0]["location"] == {"latitude": 12.34, "longitude": 56.78}
    assert sink.payloads[0]["metadata"]["source"] == "mobile_app"
    assert sink.payloads[0]["metadata"]["timestamp"] == alert.occurred_at.isoformat()


async def test_send_panic_without_location() -> None:
    sink = FakeSink()
    panic = PanicTrigger(AlertDispatcher(sink=sink))

    alert = await panic.send_panic(message="Help")

    assert alert.location is None
    assert "location" not in sink.payloads[0]
    assert sink.payloads[0]["message"] == "Help"


async def test_send_panic_failure_is_raised_and_recorded() -> None:
    dispatcher = AlertDispatcher(sink=FakeSink(fail=True))
    panic = PanicTrigger(dispatcher)

    with pytest.raises(DeliveryError):
        await panic.send_panic()

    assert panic.sending is False
    assert [alert.category for alert in dispatcher.recent_alerts()] == [AlertCategory.PANIC_BUTTON]


async def test_armed_panic_sends_after_countdown(dispatcher: AlertDispatcher, sink: FakeSink) -> None:
    panic = PanicTrigger(dispatcher, countdown_seconds=0.01)

    task = panic.arm(message="Countdown elapsed")
    assert panic.is_armed

    alert = await asyncio.wait_for(task, timeout=1)

    assert alert.message == "Countdown elapsed"
    assert len(sink.payloads) == 1
    assert not panic.is_armed


async def test_arming_twice_returns_the_same_countdown(dispatcher: AlertDispatcher) -> None:
    panic = PanicTrigger(dispatcher, countdown_seconds=10)

    first = panic.arm()
    assert panic.arm() is first

    assert panic.cancel() is True


async def test_cancel_stops_the_countdown(dispatcher: AlertDispatcher, sink: FakeSink) -> None:
    panic = PanicTrigger(dispatcher, countdown_seconds=0.05)

    task = panic.arm()
    assert panic.cancel() is True

    with pytest.raises(asyncio.CancelledError):
        await task
    await asyncio.sleep(0.1)

    assert not panic.is_armed
    assert sink.payloads == []
    assert dispatcher.recent_alerts() == []


def test_cancel_without_countdown() -> None:
    panic = PanicTrigger(AlertDispatcher(sink=FakeSink()))
    assert panic.cancel() is False


async def test_rearm_after_cancel(dispatcher: AlertDispatcher, sink: FakeSink) -> None:
    panic = PanicTrigger(dispatcher, countdown_seconds=0.01)

    panic.arm()
    panic.cancel()
    task = panic.arm(countdown=0.01)

    await asyncio.wait_for(task, timeout=1)
    assert len(sink.payloads) == 1


async def test_sending_stays_set_until_every_panic_finishes() -> None:
    sink = GatedSink()
    panic = PanicTrigger(AlertDispatcher(sink=sink))

    first = asyncio.create_task(panic.send_panic(message="first"))
    second = asyncio.create_task(panic.send_panic(message="second"))
    while len(sink.gates) < 2:
        await asyncio.sleep(0)
    assert panic.sending

    sink.gates[0].set()
    await first
    assert panic.sending

    sink.gates[1].set()
    await second
    assert not panic.sending
    assert [payload["message"] for payload in sink.payloads] == ["first", "second"]
