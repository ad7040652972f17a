# tests/test_notifications.py

from __future__ import annotations

import asyncio
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from task_tracker.models.task import TaskCreate, TaskInDB, TaskStatus
from task_tracker.services.notifications import DueDateNotifier, build_digest_html
from task_tracker.timeutil import next_run_at, seconds_between

BUCHAREST = ZoneInfo("Europe/Bucharest")
TODAY = date(2026, 3, 10)


def _notifier(users, tasks, mailer, **kwargs) -> DueDateNotifier:
    return DueDateNotifier(users, tasks, mailer, tz_name="Europe/Bucharest", **kwargs)


async def _add_task(tasks, owner_id: str, title: str, due: date = TODAY) -> None:
    await tasks.create_task(TaskCreate(title=title, description=f"{title} details", due_date=due), owner_id)


# ---- next trigger time ----

def test_next_run_later_today():
    now = datetime(2026, 3, 10, 5, 30, tzinfo=BUCHAREST)
    assert next_run_at(now, 6) == datetime(2026, 3, 10, 6, 0, tzinfo=BUCHAREST)


def test_next_run_rolls_to_tomorrow():
    now = datetime(2026, 3, 10, 6, 0, tzinfo=BUCHAREST)
    assert next_run_at(now, 6) == datetime(2026, 3, 11, 6, 0, tzinfo=BUCHAREST)

    now = datetime(2026, 12, 31, 23, 59, tzinfo=BUCHAREST)
    assert next_run_at(now, 6) == datetime(2027, 1, 1, 6, 0, tzinfo=BUCHAREST)


def test_sleep_across_dst_change_uses_real_elapsed_time():
    # Clocks go forward at 03:00 on the last Sunday of March.
    now = datetime(2026, 3, 28, 6, 0, tzinfo=BUCHAREST)
    fire_at = next_run_at(now, 6)
    assert fire_at == datetime(2026, 3, 29, 6, 0, tzinfo=BUCHAREST)
    assert seconds_between(now, fire_at) == timedelta(hours=23).total_seconds()


# ---- digest ----

def test_digest_lists_each_task():
    body = build_digest_html([
        TaskInDB(id="1", user_id="u", title="Pay rent", description="Landlord",
                 status=TaskStatus.TODO, due_date=TODAY),
        TaskInDB(id="2", user_id="u", title="<Report>", description="Q1",
                 status=TaskStatus.IN_PROGRESS, due_date=TODAY),
    ])
    assert "<h1>Tasks Due Today</h1>" in body
    assert "<li><b>Pay rent</b> -> Landlord -> [In: ToDo]</li>" in body
    assert "&lt;Report&gt;" in body
    assert "[In: InProgress]" in body


# ---- one pass ----

@pytest.mark.asyncio
async def test_pass_mails_only_users_with_due_tasks(users, tasks, mailer):
    busy = await users.create_user("busy@x.com", "hash")
    await users.create_user("idle@x.com", "hash")
    await _add_task(tasks, busy.id, "Due today")

    sent = await _notifier(users, tasks, mailer).run_once(TODAY)

    assert sent == 1
    assert len(mailer.sent) == 1
    assert mailer.sent[0].to == "busy@x.com"
    assert mailer.sent[0].subject == "Tasks due on 2026-03-10"
    assert "Due today" in mailer.sent[0].html_body


@pytest.mark.asyncio
async def test_pass_skips_done_and_future_tasks(users, tasks, mailer):
    user = await users.create_user("a@x.com", "hash")
    await _add_task(tasks, user.id, "Tomorrow", due=TODAY + timedelta(days=1))
    created = await tasks.create_task(
        TaskCreate(title="Finished", description="d", due_date=TODAY), user.id
    )
    await tasks.update_task_status(created[-1].id, user.id, TaskStatus.DONE)

    assert await _notifier(users, tasks, mailer).run_once(TODAY) == 0
    assert mailer.sent == []


@pytest.mark.asyncio
async def test_failed_recipient_does_not_block_others(users, tasks, mailer):
    for email in ("first@x.com", "broken@x.com", "last@x.com"):
        user = await users.create_user(email, "hash")
        await _add_task(tasks, user.id, f"task for {email}")
    mailer.fail_for.add("broken@x.com")

    sent = await _notifier(users, tasks, mailer).run_once(TODAY)

    assert sent == 2
    assert sorted(m.to for m in mailer.sent) == ["first@x.com", "last@x.com"]


@pytest.mark.asyncio
async def test_user_fetch_failure_counts_as_no_users(users, tasks, mailer, db):
    user = await users.create_user("a@x.com", "hash")
    await _add_task(tasks, user.id, "Due")
    db.fail("users")

    assert await _notifier(users, tasks, mailer).run_once(TODAY) == 0
    assert mailer.sent == []


@pytest.mark.asyncio
async def test_task_fetch_failure_is_isolated_per_user(users, tasks, mailer, db):
    flaky = await users.create_user("flaky@x.com", "hash")
    fine = await users.create_user("fine@x.com", "hash")
    await _add_task(tasks, flaky.id, "Lost")
    await _add_task(tasks, fine.id, "Delivered")

    db.fail("tasks", when=lambda filters: ("user_id", "==", flaky.id) in filters)

    assert await _notifier(users, tasks, mailer).run_once(TODAY) == 1
    assert [m.to for m in mailer.sent] == ["fine@x.com"]


@pytest.mark.asyncio
async def test_pass_uses_today_in_configured_zone(users, tasks, mailer):
    user = await users.create_user("a@x.com", "hash")
    await _add_task(tasks, user.id, "Due")

    # 23:30 UTC on the 9th is already the 10th in Bucharest.
    clock = lambda: datetime(2026, 3, 9, 23, 30, tzinfo=ZoneInfo("UTC"))  # noqa: E731
    assert await _notifier(users, tasks, mailer, clock=clock).run_once() == 1


@pytest.mark.asyncio
async def test_malformed_task_only_costs_its_owner_the_digest(users, tasks, mailer, db):
    broken = await users.create_user("broken@x.com", "hash")
    fine = await users.create_user("fine@x.com", "hash")
    await _add_task(tasks, fine.id, "Delivered")
    db.data["tasks"]["legacy"] = {
        "id": "legacy",
        "user_id": broken.id,
        "title": "Old",
        "description": "d",
        "status": "Archived",
        "due_date": TODAY.isoformat(),
    }

    assert await _notifier(users, tasks, mailer).run_once(TODAY) == 1
    assert [m.to for m in mailer.sent] == ["fine@x.com"]


@pytest.mark.asyncio
async def test_malformed_user_record_is_skipped(users, tasks, mailer, db):
    fine = await users.create_user("fine@x.com", "hash")
    await _add_task(tasks, fine.id, "Delivered")
    db.data["users"]["half"] = {"id": "half", "email": "half@x.com"}
    await _add_task(tasks, "half", "Orphan")

    assert await _notifier(users, tasks, mailer).run_once(TODAY) == 1
    assert [m.to for m in mailer.sent] == ["fine@x.com"]


@pytest.mark.asyncio
async def test_unexpected_error_for_one_user_does_not_stop_the_pass(users, tasks, mailer, monkeypatch):
    first = await users.create_user("first@x.com", "hash")
    second = await users.create_user("second@x.com", "hash")
    await _add_task(tasks, first.id, "One")
    await _add_task(tasks, second.id, "Two")

    real = tasks.list_tasks_due_on

    async def flaky(owner_id, due_date):
        if owner_id == first.id:
            raise RuntimeError("unexpected")
        return await real(owner_id, due_date)

    monkeypatch.setattr(tasks, "list_tasks_due_on", flaky)

    assert await _notifier(users, tasks, mailer).run_once(TODAY) == 1
    assert [m.to for m in mailer.sent] == ["second@x.com"]


# ---- loop ----

@pytest.mark.asyncio
async def test_loop_sleeps_until_trigger_then_runs_pass(users, tasks, mailer):
    user = await users.create_user("a@x.com", "hash")
    await _add_task(tasks, user.id, "Due")

    delays: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        delays.append(seconds)
        if len(delays) > 1:
            raise asyncio.CancelledError()

    clock = lambda: datetime(2026, 3, 10, 5, 0, tzinfo=BUCHAREST)  # noqa: E731
    notifier = _notifier(users, tasks, mailer, clock=clock, sleep=fake_sleep)

    with pytest.raises(asyncio.CancelledError):
        await notifier.run_forever()

    assert delays[0] == 3600
    assert len(mailer.sent) == 1


@pytest.mark.asyncio
async def test_loop_survives_a_failing_pass(users, tasks, mailer, monkeypatch):
    passes: list[int] = []

    async def broken_pass(today=None):
        passes.append(1)
        raise RuntimeError("boom")

    async def fake_sleep(seconds: float) -> None:
        if len(passes) >= 2:
            raise asyncio.CancelledError()

    notifier = _notifier(users, tasks, mailer, sleep=fake_sleep)
    monkeypatch.setattr(notifier, "run_once", broken_pass)

    with pytest.raises(asyncio.CancelledError):
        await notifier.run_forever()
    assert len(passes) == 2


@pytest.mark.asyncio
async def test_start_and_stop(users, tasks, mailer):
    notifier = _notifier(users, tasks, mailer)

    notifier.start()
    assert notifier.running
    await asyncio.sleep(0)

    await notifier.stop()
    assert not notifier.running
    await notifier.stop()


@pytest.mark.asyncio
async def test_early_wake_up_does_not_repeat_the_digest(users, tasks, mailer):
    user = await users.create_user("a@x.com", "hash")
    await _add_task(tasks, user.id, "Due")

    clock_now = [datetime(2026, 3, 10, 5, 0, tzinfo=BUCHAREST)]
    sleeps: list[float] = []

    async def early_sleep(seconds: float) -> None:
        sleeps.append(seconds)
        if len(sleeps) > 3:
            raise asyncio.CancelledError()
        # Wake 10ms before the requested deadline.
        clock_now[0] += timedelta(seconds=seconds - 0.01)

    notifier = _notifier(users, tasks, mailer, clock=lambda: clock_now[0], sleep=early_sleep)

    with pytest.raises(asyncio.CancelledError):
        await notifier.run_forever()

    assert [m.subject for m in mailer.sent] == ["Tasks due on 2026-03-10"]
    assert all(delay > 3000 for delay in sleeps)
