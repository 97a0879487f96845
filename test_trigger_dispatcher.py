import asyncio
from datetime import datetime, timezone

from conftest import Recorder, add_schedule, load_schedule, set_fields
from schedule_manager.scheduler.cron_engine import CronEngine
from schedule_manager.scheduler.runtime import build_runtime

UTC = timezone.utc


async def test_fire_creates_running_run_and_stamps_schedule(runtime, session_factory):
    schedule_id = add_schedule(session_factory)
    await runtime.registry.upsert(schedule_id)

    run = await runtime.dispatcher.fire(schedule_id)

    assert run.status == "running"
    assert run.finished_at is None
    runs = runtime.runs.list_runs(schedule_id)
    assert [r.id for r in runs] == [run.id]

    schedule = load_schedule(session_factory, schedule_id)
    assert schedule.last_status == "running"
    assert schedule.last_run_at == run.started_at
    assert schedule.next_run_at == runtime.registry.next_invocation(schedule_id)


async def test_fire_publishes_trigger_event(runtime, session_factory):
    schedule_id = add_schedule(session_factory, timezone="Europe/London", frequency_text="daily at nine")
    consumer = Recorder()
    runtime.events.subscribe("ui", consumer)

    run = await runtime.dispatcher.fire(schedule_id)
    await runtime.events.drain()

    assert consumer.events("schedule:run") == [{
        "run_id": run.id,
        "schedule_id": schedule_id,
        "title": "Daily Summary",
        "prompt": "Summarize my inbox and send an email.",
        "model": "google/gemini-3-flash-preview",
        "frequency_text": "daily at nine",
        "cron": "0 9 * * *",
        "timezone": "Europe/London",
    }]


async def test_fire_without_timer_clears_next_run(runtime, session_factory):
    schedule_id = add_schedule(session_factory)
    run = await runtime.dispatcher.run_now(schedule_id)
    assert run is not None
    assert load_schedule(session_factory, schedule_id).next_run_at is None


async def test_run_now_on_disabled_schedule_is_a_noop(runtime, session_factory):
    schedule_id = add_schedule(session_factory, enabled=False)
    consumer = Recorder()
    runtime.events.subscribe("ui", consumer)

    assert await runtime.dispatcher.run_now(schedule_id) is None
    await runtime.events.drain()

    assert runtime.runs.list_runs(schedule_id) == []
    assert consumer.messages == []
    assert load_schedule(session_factory, schedule_id).last_status is None


async def test_fire_after_disable_or_delete_is_dropped(runtime, session_factory):
    disabled = add_schedule(session_factory)
    deleting = add_schedule(session_factory)
    await runtime.registry.reschedule_all()

    set_fields(session_factory, disabled, enabled=False)
    await runtime.registry.remove(deleting, retire=True)

    assert await runtime.dispatcher.fire(disabled) is None
    assert await runtime.dispatcher.fire(deleting) is None
    assert await runtime.dispatcher.fire("never-existed") is None
    assert runtime.runs.list_runs() == []


async def test_failing_consumer_does_not_affect_the_run(runtime, session_factory):
    schedule_id = add_schedule(session_factory)
    healthy = Recorder()

    async def broken(message):
        raise ConnectionError("window closed")

    runtime.events.subscribe("broken", broken)
    runtime.events.subscribe("healthy", healthy)

    run = await runtime.dispatcher.fire(schedule_id)
    await runtime.events.drain()

    assert run is not None
    assert len(healthy.events("schedule:run")) == 1
    assert runtime.runs.get_run(run.id).status == "running"
    # in-process consumers stay registered after a failed delivery
    assert runtime.events.subscriber_count == 2


async def test_slow_consumer_is_dropped_not_awaited(runtime, session_factory):
    schedule_id = add_schedule(session_factory)
    runtime.events.delivery_timeout = 0.05
    fast = Recorder()
    release = asyncio.Event()

    async def slow(message):
        await release.wait()

    runtime.events.subscribe("slow", slow)
    runtime.events.subscribe("fast", fast)

    run = await asyncio.wait_for(runtime.dispatcher.fire(schedule_id), timeout=1)
    await runtime.events.drain()

    assert run is not None
    assert len(fast.events("schedule:run")) == 1


async def test_unsubscribed_consumer_receives_nothing(runtime, session_factory):
    schedule_id = add_schedule(session_factory)
    consumer = Recorder()
    runtime.events.subscribe("ui", consumer)
    assert runtime.events.unsubscribe("ui")
    assert not runtime.events.unsubscribe("ui")

    await runtime.dispatcher.fire(schedule_id)
    await runtime.events.drain()
    assert consumer.messages == []


async def test_timer_expiry_goes_through_the_dispatcher(session_factory, test_settings):
    clock = datetime(2026, 1, 15, 8, 59, 59, 950000, tzinfo=UTC)
    runtime = build_runtime(session_factory, test_settings, engine=CronEngine(clock=lambda: clock))
    schedule_id = add_schedule(session_factory, timezone="UTC")
    consumer = Recorder()
    runtime.events.subscribe("ui", consumer)

    try:
        await runtime.start()
        assert load_schedule(session_factory, schedule_id).next_run_at == datetime(2026, 1, 15, 9, 0, tzinfo=UTC)

        await asyncio.sleep(0.3)
        await runtime.events.drain()

        runs = runtime.runs.list_runs(schedule_id)
        assert len(runs) == 1
        assert consumer.events("schedule:run")[0]["run_id"] == runs[0].id
        schedule = load_schedule(session_factory, schedule_id)
        assert schedule.last_status == "running"
        assert schedule.next_run_at == datetime(2026, 1, 16, 9, 0, tzinfo=UTC)
    finally:
        await runtime.stop()
