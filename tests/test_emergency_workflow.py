from datetime import datetime, timezone

from conftest import FakeSender, drain
from processing.emergency import EmergencyWorkflow
from processing.notifier import SendResult
from state.emergency import Phase, INVALID_ADDRESS

T0 = datetime(2026, 3, 4, 5, 6, 7, tzinfo=timezone.utc)


def make_workflow(scheduler, sender, countdown_seconds=10):
    changes = []
    workflow = EmergencyWorkflow(
        scheduler, sender,
        on_change=changes.append,
        countdown_seconds=countdown_seconds,
        wall_clock=lambda: T0,
    )
    return workflow, changes


async def test_auto_sends_after_countdown(scheduler, ok_sender):
    workflow, _ = make_workflow(scheduler, ok_sender)
    workflow.trigger("family@example.com")
    assert workflow.state.phase == Phase.COUNTING
    assert workflow.state.remaining_seconds == 10

    scheduler.advance(9999)
    await drain()
    assert workflow.state.remaining_seconds == 1
    assert ok_sender.calls == []

    scheduler.advance(1)
    assert workflow.state.phase == Phase.SENDING
    await drain()

    assert len(ok_sender.calls) == 1
    destination, payload = ok_sender.calls[0]
    assert destination == "family@example.com"
    assert payload.triggered_at == T0
    assert payload.alert_kind
    assert workflow.state.phase == Phase.RESOLVED
    assert workflow.state.sent is True


async def test_pause_and_resume_keep_remaining(scheduler, ok_sender):
    workflow, _ = make_workflow(scheduler, ok_sender)
    workflow.trigger("family@example.com")
    scheduler.advance(3000)
    workflow.pause()
    assert workflow.state.remaining_seconds == 7

    scheduler.advance(60000)
    await drain()
    assert workflow.state.phase == Phase.PAUSED
    assert workflow.state.remaining_seconds == 7
    assert ok_sender.calls == []

    workflow.resume()
    scheduler.advance(1000)
    assert workflow.state.remaining_seconds == 6
    scheduler.advance(6000)
    await drain()
    assert len(ok_sender.calls) == 1


async def test_edit_destination_pauses(scheduler, ok_sender):
    workflow, _ = make_workflow(scheduler, ok_sender)
    workflow.trigger("")
    scheduler.advance(2000)
    workflow.edit_destination("friend@exam")
    scheduler.advance(30000)
    assert workflow.state.phase == Phase.PAUSED
    assert workflow.state.remaining_seconds == 8


async def test_double_send_now_calls_sender_once(scheduler):
    sender = FakeSender()
    workflow, _ = make_workflow(scheduler, sender)
    workflow.trigger("family@example.com")
    workflow.send_now()
    workflow.send_now()
    await drain()
    workflow.send_now()
    await drain()

    assert len(sender.calls) == 1
    assert workflow.send_in_flight
    sender.pending[0].set_result(SendResult.success())
    await drain()
    assert workflow.state.phase == Phase.RESOLVED
    assert len(sender.calls) == 1


async def test_no_tick_while_sending(scheduler):
    sender = FakeSender()
    workflow, _ = make_workflow(scheduler, sender)
    workflow.trigger("family@example.com")
    scheduler.advance(2000)
    workflow.send_now()
    scheduler.advance(20000)
    await drain()
    assert workflow.state.phase == Phase.SENDING
    assert workflow.state.remaining_seconds == 8
    assert len(sender.calls) == 1


async def test_failed_manual_send_resumes_counting(scheduler):
    sender = FakeSender(result=SendResult.failure("provider unavailable"))
    workflow, _ = make_workflow(scheduler, sender)
    workflow.trigger("family@example.com")
    scheduler.advance(4000)
    workflow.send_now()
    await drain()

    assert workflow.state.phase == Phase.COUNTING
    assert workflow.state.sent is False
    assert workflow.state.error == "provider unavailable"
    assert workflow.state.remaining_seconds == 6

    # Countdown keeps going and escalates again on expiry
    scheduler.advance(6000)
    await drain()
    assert len(sender.calls) == 2


async def test_failed_send_from_paused_stays_paused(scheduler):
    sender = FakeSender(error=ConnectionError("network down"))
    workflow, _ = make_workflow(scheduler, sender)
    workflow.trigger("family@example.com")
    workflow.pause()
    workflow.send_now()
    await drain()

    assert workflow.state.phase == Phase.PAUSED
    assert workflow.state.error == "network down"
    scheduler.advance(30000)
    await drain()
    assert len(sender.calls) == 1


async def test_failed_auto_send_is_not_retried(scheduler):
    sender = FakeSender(result=SendResult.failure("bounced"))
    workflow, _ = make_workflow(scheduler, sender, countdown_seconds=2)
    workflow.trigger("family@example.com")
    scheduler.advance(2000)
    await drain()
    scheduler.advance(60000)
    await drain()

    assert len(sender.calls) == 1
    assert workflow.state.phase == Phase.COUNTING
    assert workflow.state.remaining_seconds == 0

    sender.result = SendResult.success()
    workflow.send_now()
    await drain()
    assert workflow.state.phase == Phase.RESOLVED


async def test_expiry_with_invalid_address_waits_for_user(scheduler, ok_sender):
    workflow, _ = make_workflow(scheduler, ok_sender, countdown_seconds=1)
    workflow.trigger(None)
    scheduler.advance(1000)
    await drain()
    assert workflow.state.error == INVALID_ADDRESS
    assert ok_sender.calls == []

    workflow.edit_destination("help@example.com")
    workflow.send_now()
    await drain()
    assert ok_sender.calls[0][0] == "help@example.com"
    assert workflow.state.sent is True


async def test_dismiss_cancels_countdown(scheduler, ok_sender):
    workflow, _ = make_workflow(scheduler, ok_sender)
    workflow.trigger("family@example.com")
    scheduler.advance(5000)
    workflow.dismiss()
    scheduler.advance(60000)
    await drain()

    assert workflow.state.phase == Phase.IDLE
    assert ok_sender.calls == []
    assert scheduler.pending == []


async def test_new_activation_after_dismiss_is_fresh(scheduler, ok_sender):
    workflow, _ = make_workflow(scheduler, ok_sender)
    workflow.trigger("family@example.com")
    workflow.send_now()
    await drain()
    assert workflow.state.phase == Phase.RESOLVED

    workflow.dismiss()
    workflow.trigger("family@example.com")
    assert workflow.state.phase == Phase.COUNTING
    assert workflow.state.remaining_seconds == 10
    assert workflow.state.sent is False
    assert workflow.state.activation == 2


async def test_close_cancels_in_flight_send(scheduler):
    sender = FakeSender()
    workflow, _ = make_workflow(scheduler, sender)
    workflow.trigger("family@example.com")
    workflow.send_now()
    await drain()
    workflow.close()
    await drain()
    assert not workflow.send_in_flight
    assert workflow.state.phase == Phase.SENDING


async def test_publishes_every_change(scheduler, ok_sender):
    workflow, changes = make_workflow(scheduler, ok_sender, countdown_seconds=2)
    workflow.trigger("family@example.com")
    workflow.pause()
    workflow.pause()
    workflow.resume()
    assert [state.phase for state in changes] == [Phase.COUNTING, Phase.PAUSED, Phase.COUNTING]


async def test_zero_countdown_sends_without_waiting(scheduler, ok_sender):
    workflow, _ = make_workflow(scheduler, ok_sender, countdown_seconds=0)
    workflow.trigger("family@example.com")
    assert workflow.state.phase == Phase.SENDING
    await drain()

    assert len(ok_sender.calls) == 1
    assert workflow.state.phase == Phase.RESOLVED
    assert scheduler.pending == []


async def test_fixed_address_clears_published_error(scheduler, ok_sender):
    workflow, changes = make_workflow(scheduler, ok_sender)
    workflow.trigger("")
    workflow.send_now()
    assert changes[-1].error == INVALID_ADDRESS

    workflow.edit_destination("help@example.com")
    workflow.resume()
    assert changes[-1].phase == Phase.COUNTING
    assert changes[-1].error is None
