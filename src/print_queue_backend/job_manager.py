"""
Print job lifecycle management.

This module is the service layer behind the API:
- User sync and admin flag management
- Two-phase uploads (ticket, then job creation once the file exists)
- Job reads and listings filtered by ownership
- Status and admin note changes by administrators

Every operation that touches a job or user receives the already-verified
Caller and runs the admin-or-owner check before reading or writing.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from .authorization import Caller, can_view_user, require_admin, require_job_access
from .database import JobDatabase
from .errors import AccessDeniedError, NotFoundError, ValidationError
from .models import FileKind, Job, JobStatus, UploadTicket, User, WorkflowMetadata
from .storage import FileStorage, upload_prefix
from .user_store import UserStore
from .utils import extension_of
from .validation import require_valid_file
from .workflow import check_transition, describe_workflow

logger = logging.getLogger(__name__)


class JobManager:
    """
    Central coordinator for print jobs and the users who submit them.

    Attributes:
        jobs: Job Store
        users: User Store
        storage: Object storage for uploaded files
        strict_transitions: Enforce the workflow transition table on status changes
    """

    def __init__(
        self,
        jobs: JobDatabase,
        users: UserStore,
        storage: FileStorage,
        strict_transitions: bool = False,
    ) -> None:
        self.jobs = jobs
        self.users = users
        self.storage = storage
        self.strict_transitions = strict_transitions

    # Users

    def resolve_caller(self, external_id: str, email: str, display_name: str) -> Caller:
        """
        Build the Caller for a verified identity.

        The user record is synced on the way in. A failed sync is logged and
        otherwise ignored so that it never blocks the request.
        """
        try:
            self.users.sync_user(external_id, email, display_name)
        except Exception:
            logger.exception("Failed to sync user %s", external_id)

        return Caller(
            external_id=external_id,
            email=email,
            display_name=display_name,
            is_admin=self.users.is_admin(external_id),
        )

    def sync_user(self, caller: Caller) -> str:
        return self.users.sync_user(caller.external_id, caller.email, caller.display_name)

    def get_user_by_external_id(self, caller: Caller, external_id: str) -> User:
        if not can_view_user(caller, external_id):
            raise AccessDeniedError("You may only view your own account")
        return self.users.get_by_external_id(external_id)

    def is_user_admin(self, caller: Caller, external_id: str) -> bool:
        if not can_view_user(caller, external_id):
            raise AccessDeniedError("You may only view your own account")
        return self.users.is_admin(external_id)

    def set_user_admin(self, external_id: str, is_admin: bool) -> str:
        """
        Grant or revoke admin rights.

        Not access-controlled here: the HTTP boundary only lets admins or the
        master key reach this.
        """
        return self.users.set_admin(external_id, is_admin)

    # Uploads and submission

    def request_upload_ticket(self, caller: Caller, file_name: str, file_size_bytes: int) -> UploadTicket:
        ticket = self.storage.request_upload_ticket(caller.external_id, file_name, file_size_bytes)
        logger.info("User %s requested upload ticket %s", caller.external_id, ticket.file_ref)
        return ticket

    def submit_job(
        self,
        caller: Caller,
        file_ref: str,
        file_name: str,
        file_size_bytes: int,
        user_note: Optional[str] = None,
    ) -> Job:
        """
        Create a job for a file the caller has already uploaded.

        The job is always owned by the caller, and file_ref must come from an
        upload ticket issued to the caller. The file is re-validated and its
        presence in storage confirmed first, so a job never points at a file
        that failed to upload.

        Raises:
            AccessDeniedError: If file_ref lies outside the caller's uploads
            ValidationError: If the file metadata is not allowed or does not match storage
            TransportFailure: If the upload cannot be found in storage
        """
        require_valid_file(file_name, file_size_bytes)

        if not file_ref.startswith(upload_prefix(caller.external_id)):
            logger.warning("Denied %s a job for foreign file %s", caller.external_id, file_ref)
            raise AccessDeniedError("You may only submit files you uploaded")

        stored_size = self.storage.confirm_upload(file_ref)
        if stored_size != file_size_bytes:
            logger.warning(
                "Upload %s is %d bytes but %d were declared", file_ref, stored_size, file_size_bytes
            )
            raise ValidationError(
                "Uploaded file does not match the declared size.",
                details={"file_ref": file_ref},
            )

        note = user_note.strip() if user_note else None
        job_id = self.jobs.create_job(
            owner_id=caller.external_id,
            owner_display_name=caller.display_name or caller.email or caller.external_id,
            file_ref=file_ref,
            file_name=file_name,
            file_kind=FileKind(extension_of(file_name)).value,
            file_size_bytes=file_size_bytes,
            user_note=note or None,
        )
        logger.info("Created job %s for %s (%s)", job_id, caller.external_id, file_name)
        return self.jobs.get_by_id(job_id)

    # Reads

    def get_job(self, caller: Caller, job_id: str) -> Job:
        """
        Fetch one job.

        Non-admins get AccessDeniedError both for jobs they don't own and for
        jobs that don't exist. Admins get NotFoundError for missing jobs.
        """
        try:
            job = self.jobs.get_by_id(job_id)
        except NotFoundError:
            if caller.is_admin:
                raise
            logger.warning("Denied %s access to job %s", caller.external_id, job_id)
            raise AccessDeniedError("You do not have access to this job") from None

        require_job_access(caller, job)
        return job

    def list_jobs_by_owner(self, caller: Caller, owner_id: Optional[str] = None) -> List[Job]:
        owner_id = owner_id or caller.external_id
        if owner_id != caller.external_id:
            require_admin(caller)
        return self.jobs.list_by_owner(owner_id)

    def list_all_jobs(self, caller: Caller) -> List[Job]:
        require_admin(caller)
        return self.jobs.list_all()

    def list_jobs_by_status(self, caller: Caller, status: JobStatus) -> List[Job]:
        require_admin(caller)
        return self.jobs.list_by_status(status)

    # Admin mutations

    def set_job_status(self, caller: Caller, job_id: str, status: JobStatus) -> Job:
        """
        Move a job to a new status.

        Any status may follow any other unless strict transitions are enabled.
        Concurrent updates are last-write-wins.

        Raises:
            AccessDeniedError: If the caller is not an admin
            NotFoundError: If the job does not exist
            InvalidTransition: In strict mode, for an illegal status change
        """
        require_admin(caller)
        job = self.jobs.get_by_id(job_id)
        check_transition(job.status, status, strict=self.strict_transitions)

        self.jobs.set_status(job_id, status)
        logger.info("Job %s status %s -> %s by %s", job_id, job.status.value, JobStatus(status).value, caller.external_id)
        return self.jobs.get_by_id(job_id)

    def set_job_admin_note(self, caller: Caller, job_id: str, note: Optional[str]) -> Job:
        require_admin(caller)
        self.jobs.set_admin_note(job_id, note)
        logger.info("Job %s admin note updated by %s", job_id, caller.external_id)
        return self.jobs.get_by_id(job_id)

    # Files

    def get_job_file_url(self, caller: Caller, job_id: str) -> str:
        job = self.get_job(caller, job_id)
        return self.storage.get_file_url(job.file_ref)

    def get_file_url(self, caller: Caller, file_ref: str) -> str:
        require_admin(caller)
        return self.storage.get_file_url(file_ref)

    def delete_file(self, caller: Caller, file_ref: str) -> None:
        require_admin(caller)
        self.storage.delete_file(file_ref)

    def get_workflow_metadata(self) -> WorkflowMetadata:
        return describe_workflow(strict=self.strict_transitions)
