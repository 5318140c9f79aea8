"""
Create-or-skip and wait helpers for asynchronously provisioned Forecast resources.

Every wait polls on a fixed interval. The first poll happens one interval
after the wait starts, and each tick races the caller's cancellation event.
A cancelled wait returns normally, exactly like a resource that reached its
terminal state; callers that need a hard deadline check the event themselves
after the wait returns.
"""

import logging
import threading
from typing import Callable, Optional, Tuple

from .config import PollPolicy
from .context import ForecastContext
from .errors import (
    CreationError,
    DeletionFailed,
    ErrorKind,
    ProvisioningFailed,
    UnexpectedState,
    WaitTimeout,
    classify_error,
)

logger = logging.getLogger(__name__)

ACTIVE = "ACTIVE"
CREATE_PREFIX = "CREATE"
CREATE_FAILED = "CREATE_FAILED"
DELETE_PREFIX = "DELETE"
DELETE_FAILED = "DELETE_FAILED"

ActivePoll = Callable[[], Tuple[str, Optional[int]]]
DeletePoll = Callable[[], str]


def skip_if_already_exists(ctx: ForecastContext, resource_type: str, name: str,
                           create: Callable[[], str]) -> str:
    """
    Run a create call, tolerating a resource of the same name that already exists.

    Args:
        ctx: Forecast context providing region and account
        resource_type: Resource type tag used in the ARN
        name: Resource name
        create: Zero-argument callable performing the create and returning the ARN

    Returns:
        ARN of the created resource, or the ARN synthesized from the
        context when the resource already exists

    Raises:
        CreationError: If the create call fails for any other reason
    """
    try:
        arn = create()
    except Exception as e:
        if classify_error(e) is ErrorKind.ALREADY_EXISTS:
            logger.info(f"Skip creating {resource_type}: {name} already exists")
            return ctx.arn_for(resource_type, name)
        raise CreationError(resource_type, name, str(e)) from e

    if not arn:
        raise CreationError(resource_type, name, "service returned no ARN")
    return arn


def _ticks(policy: PollPolicy, cancel: threading.Event):
    """Yield attempt numbers, one per interval, until cancelled or out of attempts."""
    attempt = 0
    while policy.max_attempts is None or attempt < policy.max_attempts:
        if cancel.wait(policy.interval_seconds):
            return
        attempt += 1
        yield attempt


def wait_for_active(name: str, poll: ActivePoll, policy: Optional[PollPolicy] = None,
                    cancel: Optional[threading.Event] = None) -> None:
    """
    Block until a just-created resource is ACTIVE.

    Args:
        name: Human-readable resource name for log lines
        poll: Callable returning (status, estimated minutes remaining or None)
        policy: Poll interval and attempt cap
        cancel: Event that ends the wait early when set

    Raises:
        ProvisioningFailed: If the resource reports CREATE_FAILED
        UnexpectedState: If the status is neither ACTIVE nor CREATE-prefixed
        WaitTimeout: If the policy's attempts run out first
    """
    policy = policy or PollPolicy()
    cancel = cancel or threading.Event()
    status = ""
    attempts = 0

    for attempts in _ticks(policy, cancel):
        status, remaining = poll()
        if status == ACTIVE:
            logger.info(f"{name} is {ACTIVE}")
            return
        if status == CREATE_FAILED:
            raise ProvisioningFailed(name, status)
        if not status.startswith(CREATE_PREFIX):
            raise UnexpectedState(name, status, CREATE_PREFIX)
        if remaining is not None:
            logger.info(f"{name}'s status is {status}. remaining {remaining} mins")
        else:
            logger.debug(f"{name}'s status is {status}")

    if cancel.is_set():
        logger.warning(f"Stopped waiting for {name} to become {ACTIVE}: cancelled (treated as done)")
        return
    raise WaitTimeout(name, attempts, status)


def wait_for_deleted(name: str, poll: DeletePoll, policy: Optional[PollPolicy] = None,
                     cancel: Optional[threading.Event] = None) -> None:
    """
    Block until a resource is gone. A not-found error from the poll means done.

    Raises:
        DeletionFailed: If the resource reports DELETE_FAILED
        UnexpectedState: If the status is not DELETE-prefixed
        WaitTimeout: If the policy's attempts run out first
    """
    policy = policy or PollPolicy()
    cancel = cancel or threading.Event()
    status = ""
    attempts = 0

    for attempts in _ticks(policy, cancel):
        try:
            status = poll()
        except Exception as e:
            if classify_error(e) is ErrorKind.NOT_FOUND:
                logger.info(f"{name} is deleted")
                return
            raise
        if not status.startswith(DELETE_PREFIX):
            raise UnexpectedState(name, status, DELETE_PREFIX)
        if status == DELETE_FAILED:
            raise DeletionFailed(name, status)
        logger.info(f"{name}'s status is {status}")

    if cancel.is_set():
        logger.warning(f"Stopped waiting for {name} to be deleted: cancelled (treated as done)")
        return
    raise WaitTimeout(name, attempts, status)
