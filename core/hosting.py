# core/hosting.py
from __future__ import annotations
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .config import TEACHER_ROW_PREFIX
from .logs import get_logger
from .notify import Notifier
from .scheduler import expand_window, parse_ymd, to_ymd, weekday_name

log = get_logger(__name__)

# ------------------------------------------------------------
# Records
# ------------------------------------------------------------

@dataclass
class HostCandidate:
    """One enrollment of the session, or the synthetic row for the session's teacher."""
    id: str
    display_name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    can_host: bool = False
    assigned_date: Optional[str] = None
    is_synthetic_teacher_row: bool = False
    person_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.is_synthetic_teacher_row:
            self.can_host = True

    @property
    def has_address(self) -> bool:
        return bool(str(self.address or "").strip())


def teacher_candidate(teacher_id: str, name: str, address: Optional[str] = None,
                      phone: Optional[str] = None, assigned_date: Optional[str] = None) -> HostCandidate:
    return HostCandidate(
        id=f"{TEACHER_ROW_PREFIX}{teacher_id}",
        display_name=name,
        address=address,
        phone=phone,
        can_host=True,
        assigned_date=assigned_date,
        is_synthetic_teacher_row=True,
        person_id=teacher_id,
    )


@dataclass
class CandidateChange:
    candidate_id: str
    previous: Any
    new: Any
    ok: bool = True
    error: Optional[str] = None
    field: str = "host_date"


@dataclass
class OperationResult:
    """Per-candidate outcome of a mutating operation."""
    operation: str
    changes: List[CandidateChange] = field(default_factory=list)
    needs_confirmation: bool = False
    pending_candidate: Optional[str] = None
    pending_date: Optional[str] = None
    message: str = ""

    @property
    def failed(self) -> List[CandidateChange]:
        return [c for c in self.changes if not c.ok]

    @property
    def succeeded(self) -> List[CandidateChange]:
        return [c for c in self.changes if c.ok]

    @property
    def ok(self) -> bool:
        return not self.needs_confirmation and not self.failed

    @property
    def changed_count(self) -> int:
        return sum(1 for c in self.succeeded if c.previous != c.new)


@dataclass
class ValidationIssue:
    level: str            # 'error' | 'warning' | 'info' | 'success'
    code: str
    message: str
    date: Optional[str] = None
    candidate_ids: List[str] = field(default_factory=list)


@dataclass
class Coverage:
    window_size: int
    assigned_dates: List[str]
    first_assigned: Optional[str]
    implicit_covered: int
    covered: int

    @property
    def remaining(self) -> int:
        return self.window_size - self.covered

    @property
    def fraction(self) -> float:
        return (self.covered / self.window_size) if self.window_size else 0.0

    @property
    def label(self) -> str:
        return f"{self.covered}/{self.window_size}"


@dataclass
class CalendarDay:
    date: str
    weekday: str
    candidates: List[HostCandidate]
    cancelled: bool = False
    in_window: bool = True


def _norm_date(value) -> Tuple[Optional[str], bool]:
    """(canonical 'YYYY-MM-DD' or None, valid). '' and None both mean 'no date'."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None, True
    d = parse_ymd(value)
    if d is None:
        return None, False
    return to_ymd(d), True


# ------------------------------------------------------------
# Schedule
# ------------------------------------------------------------

class HostSchedule:
    """
    Assignment map (candidate id -> date or None) over the ordered session dates.

    Mutations are applied in memory first, then written one candidate at a time
    through `store`. A failed write is logged, reported to the notifier and
    recorded in the returned OperationResult; nothing is rolled back unless the
    caller asks for it with `revert(result)`. Bulk operations are not atomic.

    Validation never blocks an edit; duplicates and gaps are only reported.
    """

    def __init__(self, candidates: Iterable[HostCandidate], dates: Iterable[str],
                 cancelled: Iterable = (), *, store=None, notifier: Optional[Notifier] = None,
                 session_id: Optional[str] = None, actor: str = "system") -> None:
        self.session_id = session_id
        self.store = store
        self.notifier = notifier or Notifier()
        self.actor = actor
        self.dates: List[str] = list(dates)
        self._date_index: Dict[str, int] = {d: i for i, d in enumerate(self.dates)}
        self._candidates: "OrderedDict[str, HostCandidate]" = OrderedDict()
        self._assign: Dict[str, Optional[str]] = {}
        for c in candidates:
            self._candidates[c.id] = c
            d, ok = _norm_date(c.assigned_date)
            if not ok:
                log.warning("ignoring unreadable host date %r for %s", c.assigned_date, c.id)
            self._assign[c.id] = d
        self.cancelled: set[str] = set()
        for d in cancelled or ():
            nd, ok = _norm_date(d)
            if ok and nd:
                self.cancelled.add(nd)

    @classmethod
    def load(cls, store, session_id: str, *, notifier: Optional[Notifier] = None,
             actor: str = "system") -> "HostSchedule":
        info = store.load_session(session_id)
        dates = expand_window(info.start_date, info.end_date, info.day)
        return cls(
            store.load_candidates(session_id),
            dates,
            store.load_cancelled_dates(session_id),
            store=store,
            notifier=notifier,
            session_id=session_id,
            actor=actor,
        )

    # ---------------- read access ----------------

    @property
    def candidates(self) -> List[HostCandidate]:
        return list(self._candidates.values())

    @property
    def assignments(self) -> Dict[str, Optional[str]]:
        return dict(self._assign)

    def candidate(self, candidate_id: str) -> Optional[HostCandidate]:
        return self._candidates.get(candidate_id)

    def date_of(self, candidate_id: str) -> Optional[str]:
        return self._assign.get(candidate_id)

    def is_cancelled(self, value) -> bool:
        d, _ = _norm_date(value)
        return d is not None and d in self.cancelled

    def _sort_key(self, cand: HostCandidate):
        d = self._assign.get(cand.id)
        return (d is None, d or "", cand.display_name.casefold())

    def displayed(self) -> List[HostCandidate]:
        """Can-host candidates; assigned date ascending, unassigned last, then by name."""
        return sorted((c for c in self._candidates.values() if c.can_host), key=self._sort_key)

    def _groups(self, shown: Optional[List[HostCandidate]] = None) -> "OrderedDict[str, List[HostCandidate]]":
        out: "OrderedDict[str, List[HostCandidate]]" = OrderedDict()
        for c in (self.displayed() if shown is None else shown):
            d = self._assign.get(c.id)
            if d is not None:
                out.setdefault(d, []).append(c)
        return out

    # ---------------- persistence ----------------

    def _apply(self, candidate_id: str, new: Optional[str], op: str) -> CandidateChange:
        prev = self._assign.get(candidate_id)
        self._assign[candidate_id] = new
        change = CandidateChange(candidate_id, prev, new)
        if self.store is None or prev == new:
            return change
        try:
            self.store.save_host_date(self.session_id, self._candidates[candidate_id], new)
        except Exception as e:
            log.exception("%s: saving host date %s for %s failed", op, new, candidate_id)
            change.ok = False
            change.error = str(e)
        return change

    def _report(self, result: OperationResult, done: str) -> None:
        failed = result.failed
        if failed:
            names = ", ".join(self._name(c.candidate_id) for c in failed)
            self.notifier.error(
                f"{len(failed)} of {len(result.changes)} changes could not be saved ({names}). "
                f"Reload to see the stored schedule."
            )
        elif result.changed_count:
            self.notifier.success(f"{done}: {result.changed_count} host date(s) updated.")

    def _name(self, candidate_id: str) -> str:
        c = self._candidates.get(candidate_id)
        return c.display_name if c else candidate_id

    # ---------------- operations ----------------

    def assign(self, candidate_id: str, value, *, confirm_cancelled: bool = False) -> OperationResult:
        """
        Set (or clear with None/'') one candidate's host date.
        A date marked as not held is never assigned silently: without
        confirm_cancelled the result comes back with needs_confirmation=True and
        the map is left untouched. Pass that result to `confirm()` to go ahead.
        """
        result = OperationResult("assign")
        if candidate_id not in self._candidates:
            result.changes.append(CandidateChange(candidate_id, None, None, ok=False, error="unknown candidate"))
            return result
        new, valid = _norm_date(value)
        prev = self._assign.get(candidate_id)
        if not valid:
            result.changes.append(CandidateChange(candidate_id, prev, prev, ok=False, error=f"invalid date {value!r}"))
            return result
        if new is not None and new in self.cancelled and not confirm_cancelled:
            result.needs_confirmation = True
            result.pending_candidate = candidate_id
            result.pending_date = new
            result.message = (f"{new} is marked as not held. "
                              f"Assign {self._name(candidate_id)} to it anyway?")
            return result
        if new is not None and self.dates and new not in self._date_index:
            log.info("host date %s for %s is outside the session dates", new, candidate_id)

        change = self._apply(candidate_id, new, "assign")
        result.changes.append(change)
        if not change.ok:
            self.notifier.error(f"Could not save host date for {self._name(candidate_id)}: {change.error}")
        return result

    def confirm(self, pending: OperationResult) -> OperationResult:
        """Apply an assignment that was held back for confirmation."""
        if not pending.needs_confirmation or pending.pending_candidate is None:
            return OperationResult("assign")
        return self.assign(pending.pending_candidate, pending.pending_date, confirm_cancelled=True)

    def set_can_host(self, candidate_id: str, value: bool) -> OperationResult:
        """Toggle hosting for an enrollment. The teacher row always hosts. The date is kept."""
        result = OperationResult("set_can_host")
        cand = self._candidates.get(candidate_id)
        if cand is None:
            result.changes.append(CandidateChange(candidate_id, None, None, ok=False,
                                                  error="unknown candidate", field="can_host"))
            return result
        value = bool(value)
        if cand.is_synthetic_teacher_row:
            result.changes.append(CandidateChange(candidate_id, True, True, ok=False,
                                                  error="the teacher always hosts", field="can_host"))
            return result
        change = CandidateChange(candidate_id, cand.can_host, value, field="can_host")
        cand.can_host = value
        if self.store is not None and change.previous != value:
            try:
                self.store.set_can_host(self.session_id, cand, value)
            except Exception as e:
                log.exception("saving can_host=%s for %s failed", value, candidate_id)
                change.ok = False
                change.error = str(e)
                self.notifier.error(f"Could not update hosting for {cand.display_name}: {e}")
        result.changes.append(change)
        return result

    def shift_all(self, direction: int) -> OperationResult:
        """
        Move every displayed candidate one session date forward (+1) or back (-1).
        Unassigned, or on a date not in the sequence -> first (forward) / last (back).
        Stays put at either end of the sequence.
        """
        if direction == 0:
            raise ValueError("direction must be +1 or -1")
        step = 1 if direction > 0 else -1
        result = OperationResult("shift_all")
        if not self.dates:
            return result
        last = len(self.dates) - 1
        for cand in self.displayed():
            cur = self._assign.get(cand.id)
            idx = self._date_index.get(cur) if cur is not None else None
            if idx is None:
                new = self.dates[0] if step > 0 else self.dates[last]
            else:
                new = self.dates[min(max(0, idx + step), last)]
            result.changes.append(self._apply(cand.id, new, "shift_all"))
        self._report(result, "Shifted " + ("forward" if step > 0 else "back"))
        return result

    def clear_all(self) -> OperationResult:
        """Clear every displayed candidate's date. Callers confirm before calling."""
        result = OperationResult("clear_all")
        for cand in self.displayed():
            result.changes.append(self._apply(cand.id, None, "clear_all"))
        self._report(result, "Cleared")
        return result

    def quick_fix(self) -> OperationResult:
        """
        For each date held by more than one displayed candidate keep the first in
        display order and clear the others. Cleared candidates are not moved to
        free dates.
        """
        result = OperationResult("quick_fix")
        for d, members in self._groups().items():
            for cand in members[1:]:
                result.changes.append(self._apply(cand.id, None, "quick_fix"))
        self._report(result, "Duplicates cleared")
        return result

    def revert(self, result: OperationResult) -> int:
        """Put back the previous in-memory value of every failed change. Returns how many."""
        n = 0
        for c in result.failed:
            if c.candidate_id not in self._candidates:
                continue
            if c.field == "can_host":
                self._candidates[c.candidate_id].can_host = bool(c.previous)
            else:
                self._assign[c.candidate_id] = c.previous
            n += 1
        return n

    # ---------------- cancelled dates ----------------

    def mark_cancelled(self, value, reason: Optional[str] = None) -> bool:
        d, ok = _norm_date(value)
        if not ok or d is None:
            self.notifier.warning(f"Not a date: {value!r}")
            return False
        if self.store is not None:
            try:
                n = self.store.mark_cancelled(self.session_id, d, self.actor, reason)
            except Exception as e:
                log.exception("marking %s as not held failed", d)
                self.notifier.error(f"Could not mark {d} as not held: {e}")
                return False
            self.notifier.success(f"{d} marked as not held ({n} attendance record(s)).")
        self.cancelled.add(d)
        return True

    def unmark_cancelled(self, value, reason: Optional[str] = None) -> bool:
        d, ok = _norm_date(value)
        if not ok or d is None or d not in self.cancelled:
            return False
        if self.store is not None:
            try:
                n = self.store.unmark_cancelled(self.session_id, d, self.actor, reason)
            except Exception as e:
                log.exception("un-marking %s failed", d)
                self.notifier.error(f"Could not restore {d}: {e}")
                return False
            self.notifier.success(f"{d} restored; {n} record(s) removed.")
        self.cancelled.discard(d)
        return True

    # ---------------- validation & reporting ----------------

    def coverage(self, shown: Optional[List[HostCandidate]] = None) -> Coverage:
        """
        Covered = session dates explicitly assigned, plus every session date
        strictly before the earliest assigned date.

        The earliest assigned date may lie outside the window. When it falls
        after the last session date, every window date counts as covered and
        validate() reports the schedule complete.
        """
        shown = self.displayed() if shown is None else shown
        assigned = sorted({d for d in (self._assign.get(c.id) for c in shown) if d is not None})
        first = assigned[0] if assigned else None
        window = set(self.dates)
        implicit = [d for d in self.dates if first is not None and d < first]
        explicit = [d for d in assigned if d in window]
        covered = min(len(self.dates), len(implicit) + len(explicit))
        return Coverage(
            window_size=len(self.dates),
            assigned_dates=assigned,
            first_assigned=first,
            implicit_covered=len(implicit),
            covered=covered,
        )

    def validate(self) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        shown = self.displayed()

        for d, members in self._groups(shown).items():
            if len(members) > 1:
                names = ", ".join(m.display_name for m in members)
                issues.append(ValidationIssue(
                    "error", "duplicate",
                    f"{d}: {len(members)} hosts on the same date ({names})",
                    date=d, candidate_ids=[m.id for m in members],
                ))

        for c in shown:
            if not c.has_address:
                issues.append(ValidationIssue(
                    "warning", "missing_address",
                    f"{c.display_name} has no address on file",
                    date=self._assign.get(c.id), candidate_ids=[c.id],
                ))

        unassigned = [c for c in shown if self._assign.get(c.id) is None]
        for c in unassigned:
            issues.append(ValidationIssue(
                "warning", "unassigned", f"{c.display_name} has no host date",
                candidate_ids=[c.id],
            ))

        for c in shown:
            d = self._assign.get(c.id)
            if d is not None and d in self.cancelled:
                issues.append(ValidationIssue(
                    "warning", "cancelled_date",
                    f"{c.display_name} hosts on {d}, which is marked as not held",
                    date=d, candidate_ids=[c.id],
                ))

        cov = self.coverage(shown)
        if cov.remaining > 0:
            issues.append(ValidationIssue(
                "info", "coverage",
                f"Coverage {cov.label} session dates ({cov.remaining} still need a host)",
            ))
        elif cov.window_size and not unassigned:
            issues.append(ValidationIssue("success", "complete", "Every session date has a host"))
        return issues

    def calendar_view(self) -> List[CalendarDay]:
        """One entry per session date (hosts in display order), then any assigned dates outside the window."""
        groups = self._groups()
        days = [
            CalendarDay(d, weekday_name(parse_ymd(d)), groups.get(d, []), d in self.cancelled)
            for d in self.dates
        ]
        for d in sorted(set(groups) - set(self._date_index)):
            days.append(CalendarDay(d, weekday_name(parse_ymd(d)), groups[d], d in self.cancelled, in_window=False))
        return days
