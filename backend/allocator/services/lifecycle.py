from __future__ import annotations

import logging
from enum import Enum

from allocator.core.exceptions import InvalidTransitionError
from allocator.models.schedule import ScheduleInstance, ScheduleStatus

logger = logging.getLogger(__name__)


class Transition(str, Enum):
    lock = "lock"
    complete = "complete"
    release = "release"
    open_preferences = "open_preferences"
    close_preferences = "close_preferences"


# A solution may be imported from any status except LOCKED, where a live solve
# is in flight; the live solve itself completes from LOCKED.
ALLOWED_TRANSITIONS: dict[Transition, dict[ScheduleStatus, ScheduleStatus]] = {
    Transition.lock: {
        ScheduleStatus.draft: ScheduleStatus.locked,
        ScheduleStatus.preferences_open: ScheduleStatus.locked,
        ScheduleStatus.completed: ScheduleStatus.locked,
    },
    Transition.complete: {
        ScheduleStatus.draft: ScheduleStatus.completed,
        ScheduleStatus.preferences_open: ScheduleStatus.completed,
        ScheduleStatus.locked: ScheduleStatus.completed,
        ScheduleStatus.completed: ScheduleStatus.completed,
    },
    Transition.release: {
        ScheduleStatus.locked: ScheduleStatus.draft,
    },
    Transition.open_preferences: {
        ScheduleStatus.draft: ScheduleStatus.preferences_open,
    },
    Transition.close_preferences: {
        ScheduleStatus.preferences_open: ScheduleStatus.draft,
    },
}


def next_status(current: ScheduleStatus, transition: Transition) -> ScheduleStatus:
    targets = ALLOWED_TRANSITIONS[transition]
    current = ScheduleStatus(current)
    if current not in targets:
        raise InvalidTransitionError(
            f"Cannot {transition.value.replace('_', ' ')} a schedule that is {current.value}.",
            details={"status": current.value, "transition": transition.value},
        )
    return targets[current]


def check_transition(
    schedule: ScheduleInstance,
    transition: Transition,
    *,
    completing_live_solve: bool = False,
) -> ScheduleStatus:
    """Return the status ``transition`` would lead to, without mutating ``schedule``.

    Completing from LOCKED is reserved for the live solve that took the lock,
    so uploads cannot race an in-flight allocation.
    """
    current = ScheduleStatus(schedule.status)
    if transition is Transition.complete and current is ScheduleStatus.locked and not completing_live_solve:
        raise InvalidTransitionError(
            "An allocation is in progress for this schedule; wait for it to finish or unlock it first.",
            details={"status": current.value, "transition": transition.value},
        )
    return next_status(current, transition)


def apply_transition(
    schedule: ScheduleInstance,
    transition: Transition,
    *,
    completing_live_solve: bool = False,
) -> ScheduleStatus:
    """Move ``schedule`` along ``transition``; the caller owns the commit."""
    current = ScheduleStatus(schedule.status)
    target = check_transition(schedule, transition, completing_live_solve=completing_live_solve)
    schedule.status = target
    logger.debug("Schedule %s: %s -> %s via %s", schedule.id, current.value, target.value, transition.value)
    return target
