"""
Pure task rules: audit action inference, status transitions, overdue
detection and day bucketing for trends.
"""

from datetime import UTC, date, datetime, timedelta
from uuid import uuid4
from zoneinfo import ZoneInfo

from teamtrack.models import ActivityAction, Label, Task, TaskStatus
from teamtrack.models.task import TaskPriority
from teamtrack.services.activity_service import infer_task_action, to_jsonable
from teamtrack.services.dashboard_service import bucket_by_day
from teamtrack.services.task_service import apply_status_transition

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


def make_task(**fields) -> Task:
    fields.setdefault("status", TaskStatus.todo)
    fields.setdefault("priority", TaskPriority.medium)
    fields.setdefault("labels", [])
    return Task(id=uuid4(), **fields)


# ---------------------------------------------------------------------------
# 1. Audit action inference
# ---------------------------------------------------------------------------

def test_assignment_wins_over_status_change():
    task = make_task()
    patch = {"assignee_id": uuid4(), "status": TaskStatus.done}
    assert infer_task_action(task, patch) == ActivityAction.task_assign


def test_unassign_requires_an_existing_assignee():
    assert infer_task_action(make_task(), {"assignee_id": None}) == ActivityAction.task_update
    task = make_task(assignee_id=uuid4())
    assert infer_task_action(task, {"assignee_id": None}) == ActivityAction.task_unassign


def test_same_assignee_falls_through_to_status():
    assignee = uuid4()
    task = make_task(assignee_id=assignee)
    patch = {"assignee_id": assignee, "status": TaskStatus.in_progress}
    assert infer_task_action(task, patch) == ActivityAction.task_status_change


def test_priority_then_labels_then_plain_update():
    label = Label(id=uuid4(), name="bug")
    task = make_task(labels=[label])

    assert (
        infer_task_action(task, {"priority": TaskPriority.urgent, "label_ids": []})
        == ActivityAction.task_priority_change
    )
    assert infer_task_action(task, {"label_ids": [label.id, uuid4()]}) == ActivityAction.task_label_add
    assert infer_task_action(task, {"label_ids": []}) == ActivityAction.task_label_remove
    assert infer_task_action(task, {"title": "Renamed"}) == ActivityAction.task_update


def test_unchanged_status_is_plain_update():
    task = make_task(status=TaskStatus.in_review)
    assert infer_task_action(task, {"status": TaskStatus.in_review}) == ActivityAction.task_update


def test_audit_values_render_as_json():
    label_id = uuid4()
    assert to_jsonable(TaskStatus.done) == "done"
    assert to_jsonable(label_id) == str(label_id)
    assert to_jsonable(date(2026, 3, 10)) == "2026-03-10"
    assert to_jsonable(NOW) == "2026-03-10T12:00:00+00:00"
    assert to_jsonable([label_id, TaskPriority.high]) == [str(label_id), "high"]
    assert to_jsonable("plain") == "plain"
    assert to_jsonable(None) is None


# ---------------------------------------------------------------------------
# 2. Status transitions
# ---------------------------------------------------------------------------

def test_entering_done_stamps_completed_at():
    task = make_task(status=TaskStatus.in_progress)
    assert apply_status_transition(task, TaskStatus.done, NOW) is True
    assert task.status == TaskStatus.done
    assert task.completed_at == NOW


def test_done_to_done_keeps_original_timestamp():
    task = make_task(status=TaskStatus.done, completed_at=NOW)
    later = NOW + timedelta(days=2)
    assert apply_status_transition(task, TaskStatus.done, later) is False
    assert task.completed_at == NOW


def test_leaving_done_clears_completed_at():
    task = make_task(status=TaskStatus.done, completed_at=NOW)
    assert apply_status_transition(task, TaskStatus.in_review, NOW) is True
    assert task.completed_at is None


def test_transition_between_open_statuses_does_not_touch_done():
    task = make_task(status=TaskStatus.backlog)
    assert apply_status_transition(task, TaskStatus.cancelled, NOW) is False
    assert task.completed_at is None


# ---------------------------------------------------------------------------
# 3. Overdue
# ---------------------------------------------------------------------------

def test_overdue_only_for_open_tasks_past_due():
    today = date(2026, 3, 10)
    assert make_task(due_date=date(2026, 3, 9)).overdue_on(today)
    assert not make_task(due_date=today).overdue_on(today)
    assert not make_task(due_date=None).overdue_on(today)
    assert not make_task(due_date=date(2026, 3, 1), status=TaskStatus.done).overdue_on(today)
    assert not make_task(due_date=date(2026, 3, 1), status=TaskStatus.cancelled).overdue_on(today)


# ---------------------------------------------------------------------------
# 4. Trend buckets
# ---------------------------------------------------------------------------

def test_bucket_by_day_uses_reporting_timezone():
    tz = ZoneInfo("America/New_York")
    stamps = [
        datetime(2026, 3, 10, 2, 30, tzinfo=UTC),  # still March 9 in New York
        datetime(2026, 3, 10, 15, 0, tzinfo=UTC),
        datetime(2026, 3, 10, 18, 0),  # naive values are read as UTC
    ]
    buckets = bucket_by_day(stamps, tz)
    assert [(b.date, b.count) for b in buckets] == [
        (date(2026, 3, 9), 1),
        (date(2026, 3, 10), 2),
    ]
