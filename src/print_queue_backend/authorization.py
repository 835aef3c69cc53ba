"""
Access rules for print jobs and users.

Identity is verified once at the HTTP boundary and handed to the service as a
Caller. The checks here are pure functions of that caller and the resource
owner; they never look anything up.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .errors import AccessDeniedError
from .models import Job

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Caller:
    """An already-authenticated user acting on the service."""

    external_id: str
    email: str = ""
    display_name: str = ""
    is_admin: bool = False


def can_access_job(caller_external_id: str, is_admin: bool, owner_id: str) -> bool:
    """Admins may access every job; everyone else only the jobs they own."""
    if is_admin:
        return True
    return bool(caller_external_id) and caller_external_id == owner_id


def can_manage_jobs(is_admin: bool) -> bool:
    """Only admins may change a job's status or admin note."""
    return bool(is_admin)


def can_view_user(caller: Caller, external_id: str) -> bool:
    return caller.is_admin or caller.external_id == external_id


def require_job_access(caller: Caller, job: Job) -> None:
    if not can_access_job(caller.external_id, caller.is_admin, job.owner_id):
        logger.warning("Denied %s access to job %s", caller.external_id, job.id)
        raise AccessDeniedError("You do not have access to this job")


def require_admin(caller: Caller) -> None:
    if not can_manage_jobs(caller.is_admin):
        logger.warning("Denied admin operation to %s", caller.external_id)
        raise AccessDeniedError("Administrator access required")
