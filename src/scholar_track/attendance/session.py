from __future__ import annotations

from datetime import date

from ..core.enums import SessionPolicy

_DATE_BOUND = {SessionPolicy.SAME_DAY, SessionPolicy.SAME_DAY_BACKFILL}


def is_session_open(*, today: date, session_date: date, finalized: bool, policy: SessionPolicy) -> bool:
    """Whether a (class, date) session still accepts corrective writes.

    Finalization is one-way. Under the same-day policies a session also
    closes once its date is no longer today.
    """

    if finalized:
        return False
    if policy in _DATE_BOUND:
        return session_date == today
    return True


def accepts_new_records(*, today: date, session_date: date, finalized: bool, policy: SessionPolicy) -> bool:
    """Whether a student with no record yet may still be recorded.

    Only SAME_DAY_BACKFILL lets a closed past-date session take first-time
    inserts. An explicit finalize refuses them under every policy.
    """

    if finalized:
        return False
    if is_session_open(today=today, session_date=session_date, finalized=False, policy=policy):
        return True
    return policy == SessionPolicy.SAME_DAY_BACKFILL
