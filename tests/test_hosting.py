"""Tests for the in-memory host schedule: shifting, fixing, coverage and validation."""
import pytest

from core.host_store import StoreError
from core.hosting import HostCandidate, HostSchedule, teacher_candidate
from core.notify import CollectingListener, Notifier
from core.scheduler import expand_window

# ten consecutive dates, 2025-01-06 .. 2025-01-15
DATES = expand_window("2025-01-06", "2025-01-15")


class FakeStore:
    """Records writes; raises for candidate ids listed in fail_for."""

    def __init__(self, fail_for=()) -> None:
        self.fail_for = set(fail_for)
        self.saved: dict[str, object] = {}
        self.can_host: dict[str, bool] = {}
        self.marked: list[str] = []
        self.unmarked: list[str] = []

    def save_host_date(self, session_id, candidate, host_date) -> None:
        if candidate.id in self.fail_for:
            raise StoreError(f"write refused for {candidate.id}")
        self.saved[candidate.id] = host_date

    def set_can_host(self, session_id, candidate, value) -> None:
        if candidate.id in self.fail_for:
            raise StoreError("write refused")
        self.can_host[candidate.id] = value

    def mark_cancelled(self, session_id, day, actor, reason) -> int:
        self.marked.append(day)
        return 3

    def unmark_cancelled(self, session_id, day, actor, reason) -> int:
        self.unmarked.append(day)
        return 3


def cand(cid: str, date=None, can_host=True, address="1 Main St") -> HostCandidate:
    return HostCandidate(id=cid, display_name=cid.title(), address=address, can_host=can_host, assigned_date=date)


def make(cands, cancelled=(), store=None):
    notifier = Notifier()
    inbox = CollectingListener()
    notifier.subscribe(inbox)
    sched = HostSchedule(cands, DATES, cancelled, store=store, notifier=notifier, session_id="s1", actor="tester")
    return sched, inbox


# ---------------- display ----------------

def test_displayed_orders_by_date_then_unassigned_and_skips_non_hosts() -> None:
    sched, _ = make([
        cand("zed"),
        cand("amy", DATES[4]),
        cand("bob", DATES[1]),
        cand("cal", DATES[1]),
        cand("dan", can_host=False),
    ])
    assert [c.id for c in sched.displayed()] == ["bob", "cal", "amy", "zed"]


def test_teacher_row_always_hosts() -> None:
    t = teacher_candidate("t1", "Teacher")
    assert t.id == "teacher:t1"
    assert t.can_host and t.is_synthetic_teacher_row
    assert HostCandidate(id="x", display_name="X", can_host=False, is_synthetic_teacher_row=True).can_host


# ---------------- shifting ----------------

def test_shift_forward_from_unassigned_takes_first_date() -> None:
    sched, _ = make([cand("amy")])
    sched.shift_all(+1)
    assert sched.date_of("amy") == DATES[0]


def test_shift_back_from_unassigned_takes_last_date() -> None:
    sched, _ = make([cand("amy")])
    sched.shift_all(-1)
    assert sched.date_of("amy") == DATES[-1]


def test_shift_stays_at_sequence_ends() -> None:
    sched, _ = make([cand("amy", DATES[-1]), cand("bob", DATES[0])])
    sched.shift_all(+1)
    assert sched.date_of("amy") == DATES[-1]
    assert sched.date_of("bob") == DATES[1]
    sched2, _ = make([cand("bob", DATES[0])])
    sched2.shift_all(-1)
    assert sched2.date_of("bob") == DATES[0]


def test_shift_moves_off_sequence_date_to_first() -> None:
    sched, _ = make([cand("amy", "2025-03-01")])
    sched.shift_all(+1)
    assert sched.date_of("amy") == DATES[0]


def test_shift_ignores_candidates_who_cannot_host() -> None:
    sched, _ = make([cand("amy", DATES[2], can_host=False)])
    sched.shift_all(+1)
    assert sched.date_of("amy") == DATES[2]


def test_shift_direction_zero_is_rejected() -> None:
    sched, _ = make([cand("amy")])
    with pytest.raises(ValueError):
        sched.shift_all(0)


def test_shift_on_empty_window_changes_nothing() -> None:
    sched = HostSchedule([cand("amy")], [])
    assert sched.shift_all(+1).changes == []
    assert sched.date_of("amy") is None


# ---------------- duplicates ----------------

def test_duplicate_date_is_one_error_naming_both() -> None:
    sched, _ = make([cand("amy", "2025-01-08"), cand("bob", "2025-01-08"), cand("cal", DATES[0])])
    errors = [i for i in sched.validate() if i.level == "error"]
    assert len(errors) == 1
    assert errors[0].code == "duplicate"
    assert errors[0].date == "2025-01-08"
    assert set(errors[0].candidate_ids) == {"amy", "bob"}
    assert "Amy" in errors[0].message and "Bob" in errors[0].message


def test_quick_fix_keeps_first_in_display_order_and_is_idempotent() -> None:
    sched, _ = make([cand("cal", DATES[3]), cand("bob", DATES[3]), cand("amy", DATES[3]), cand("dee", DATES[5])])
    first = sched.quick_fix()
    after_once = sched.assignments
    assert after_once["amy"] == DATES[3]
    assert after_once["bob"] is None and after_once["cal"] is None
    assert after_once["dee"] == DATES[5]
    assert first.changed_count == 2

    second = sched.quick_fix()
    assert second.changes == []
    assert sched.assignments == after_once
    assert not [i for i in sched.validate() if i.level == "error"]


def test_clear_all_clears_displayed_only() -> None:
    sched, _ = make([cand("amy", DATES[1]), cand("bob", DATES[2], can_host=False)])
    sched.clear_all()
    assert sched.date_of("amy") is None
    assert sched.date_of("bob") == DATES[2]


# ---------------- coverage ----------------

def test_coverage_counts_dates_before_first_assignment() -> None:
    sched, _ = make([cand("amy", DATES[2]), cand("bob")])
    cov = sched.coverage()
    assert cov.window_size == 10
    assert cov.implicit_covered == 2
    assert cov.covered == 3
    assert cov.remaining == 7
    assert cov.label == "3/10"


def test_coverage_ignores_dates_outside_window_and_is_capped() -> None:
    sched, _ = make([cand("amy", "2025-03-01"), cand("bob", DATES[0])])
    cov = sched.coverage()
    assert cov.covered == 1
    full, _ = make([cand(f"c{i}", d) for i, d in enumerate(DATES)])
    assert full.coverage().covered == 10
    assert full.coverage().remaining == 0


def test_validate_reports_gaps_and_completion() -> None:
    sched, _ = make([cand("amy", DATES[0], address=""), cand("bob")])
    codes = {i.code for i in sched.validate()}
    assert {"missing_address", "unassigned", "coverage"} <= codes
    assert "complete" not in codes

    full, _ = make([cand(f"c{i}", d) for i, d in enumerate(DATES)])
    issues = full.validate()
    assert [i.code for i in issues] == ["complete"]
    assert issues[0].level == "success"


# ---------------- cancelled dates ----------------

def test_assign_to_cancelled_date_waits_for_confirmation() -> None:
    store = FakeStore()
    sched, _ = make([cand("amy", DATES[0])], cancelled=["2025-01-08"], store=store)
    before = sched.assignments

    pending = sched.assign("amy", "2025-01-08")
    assert pending.needs_confirmation
    assert pending.pending_date == "2025-01-08"
    assert not pending.ok
    assert sched.assignments == before
    assert store.saved == {}

    done = sched.confirm(pending)
    assert done.ok
    assert sched.date_of("amy") == "2025-01-08"
    assert store.saved == {"amy": "2025-01-08"}
    assert any(i.code == "cancelled_date" for i in sched.validate())


def test_mark_and_unmark_cancelled_go_through_store() -> None:
    store = FakeStore()
    sched, inbox = make([cand("amy")], store=store)
    assert sched.mark_cancelled("2025-01-09", "storm")
    assert sched.is_cancelled("2025-01-09")
    assert store.marked == ["2025-01-09"]
    assert sched.unmark_cancelled("2025-01-09")
    assert not sched.is_cancelled("2025-01-09")
    assert store.unmarked == ["2025-01-09"]
    assert inbox.levels() == ["success", "success"]
    assert not sched.unmark_cancelled("2025-01-09")
    assert not sched.mark_cancelled("soon")


def test_calendar_view_lists_window_then_outside_dates() -> None:
    sched, _ = make([cand("amy", DATES[1]), cand("bob", "2025-02-01")], cancelled=[DATES[2]])
    days = sched.calendar_view()
    assert [d.date for d in days[:10]] == DATES
    assert days[1].candidates[0].id == "amy"
    assert days[2].cancelled
    assert days[-1].date == "2025-02-01" and not days[-1].in_window
    assert days[0].weekday == "Mon"


# ---------------- persistence results ----------------

def test_partial_failure_is_reported_per_candidate_and_revertible() -> None:
    store = FakeStore(fail_for={"bob"})
    sched, inbox = make([cand("amy", DATES[0]), cand("bob", DATES[1]), cand("cal", DATES[2])], store=store)

    result = sched.shift_all(+1)
    assert [c.candidate_id for c in result.failed] == ["bob"]
    assert store.saved == {"amy": DATES[1], "cal": DATES[3]}
    assert "error" in inbox.levels()

    # memory is optimistic until reverted
    assert sched.date_of("bob") == DATES[2]
    assert sched.revert(result) == 1
    assert sched.date_of("bob") == DATES[1]
    assert sched.date_of("amy") == DATES[1]
    assert sched.date_of("cal") == DATES[3]


def test_unchanged_value_is_not_written() -> None:
    store = FakeStore()
    sched, _ = make([cand("amy", DATES[0])], store=store)
    res = sched.assign("amy", DATES[0])
    assert res.ok and res.changed_count == 0
    assert store.saved == {}


def test_assign_rejects_unknown_candidate_and_bad_date() -> None:
    sched, _ = make([cand("amy", DATES[0])])
    assert sched.assign("nobody", DATES[1]).failed
    bad = sched.assign("amy", "next tuesday")
    assert bad.failed and bad.failed[0].error.startswith("invalid date")
    assert sched.date_of("amy") == DATES[0]
    assert sched.assign("amy", "").ok
    assert sched.date_of("amy") is None


def test_teacher_can_host_flag_is_fixed() -> None:
    store = FakeStore()
    t = teacher_candidate("t1", "Teacher")
    sched, _ = make([t, cand("amy")], store=store)
    res = sched.set_can_host(t.id, False)
    assert not res.ok
    assert sched.candidate(t.id).can_host
    assert store.can_host == {}

    res = sched.set_can_host("amy", False)
    assert res.ok
    assert store.can_host == {"amy": False}
    assert "amy" not in [c.id for c in sched.displayed()]


def test_failed_can_host_toggle_reverts() -> None:
    store = FakeStore(fail_for={"amy"})
    sched, inbox = make([cand("amy")], store=store)
    res = sched.set_can_host("amy", False)
    assert res.failed
    assert inbox.levels() == ["error"]
    sched.revert(res)
    assert sched.candidate("amy").can_host


def test_assign_stores_datetimes_as_plain_dates() -> None:
    from datetime import datetime

    import pandas as pd

    sched, _ = make([cand("amy"), cand("bob")])
    assert sched.assign("amy", datetime(2025, 1, 6, 18, 0)).ok
    assert sched.date_of("amy") == "2025-01-06"
    assert sched.assign("bob", pd.Timestamp("2025-01-07")).ok
    assert sched.date_of("bob") == "2025-01-07"
    assert [d.candidates[0].id for d in sched.calendar_view()[:2]] == ["amy", "bob"]


def test_only_assignment_after_window_covers_every_date() -> None:
    # the earliest assigned date is past the window, so all window dates precede it
    sched, _ = make([cand("amy", "2025-03-01")])
    cov = sched.coverage()
    assert cov.implicit_covered == 10
    assert cov.covered == 10 and cov.remaining == 0
    assert [(i.code, i.level) for i in sched.validate()] == [("complete", "success")]
