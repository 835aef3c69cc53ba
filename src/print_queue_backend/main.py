from __future__ import annotations

import logging
import secrets
from pathlib import Path
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .authorization import Caller
from .configuration import configure_logging, load_settings
from .database import JobDatabase
from .errors import PrintQueueError
from .job_manager import JobManager
from .models import (
    AdminFlagUpdate,
    AdminNoteUpdate,
    FileUrl,
    Job,
    JobCreateRequest,
    JobStatus,
    StatusUpdate,
    UploadTicket,
    UploadTicketRequest,
    User,
    UserRef,
    WorkflowMetadata,
)
from .storage import FileStorage
from .user_store import UserStore

settings = load_settings()
configure_logging(settings.logging.level)

logger = logging.getLogger(__name__)

app = FastAPI(title="Print Queue API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.server.allowed_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_db_path = Path(settings.database.path)
job_manager = JobManager(
    jobs=JobDatabase(_db_path),
    users=UserStore(_db_path),
    storage=FileStorage(
        bucket=settings.storage.bucket,
        upload_expiration=settings.storage.upload_expiration,
        download_expiration=settings.storage.download_expiration,
    ),
    strict_transitions=settings.workflow.strict_transitions,
)


def get_job_manager() -> JobManager:
    return job_manager


@app.exception_handler(PrintQueueError)
async def handle_print_queue_error(request: Request, exc: PrintQueueError) -> JSONResponse:
    logger.info("%s %s failed with %d: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def _key_matches(provided: Optional[str], expected: str) -> bool:
    if not provided or not expected:
        return False
    return secrets.compare_digest(provided.encode(), expected.encode())


def _verify_gateway_key(api_key: Optional[str]) -> None:
    if not _key_matches(api_key, settings.auth.gateway_key):
        raise HTTPException(status_code=401, detail="Invalid API key")


def get_caller(
    x_api_key: str = Header(...),
    x_user_id: str = Header(...),
    x_user_email: str = Header(""),
    x_user_name: str = Header(""),
    manager: JobManager = Depends(get_job_manager),
) -> Caller:
    """
    Identity of the signed-in user, as vouched for by the trusted front end.

    The front end authenticates users with the identity provider and forwards
    their ID on each call together with the shared gateway key.
    """
    _verify_gateway_key(x_api_key)
    if not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing user identity")
    return manager.resolve_caller(x_user_id, x_user_email, x_user_name)


def require_admin_or_master(
    x_master_key: Optional[str] = Header(None),
    x_api_key: Optional[str] = Header(None),
    x_user_id: Optional[str] = Header(None),
    x_user_email: str = Header(""),
    x_user_name: str = Header(""),
    manager: JobManager = Depends(get_job_manager),
) -> None:
    """Allow the master key (used to bootstrap the first admin) or an admin user."""
    if _key_matches(x_master_key, settings.auth.master_key):
        return
    if x_master_key:
        raise HTTPException(status_code=401, detail="Invalid master key")

    _verify_gateway_key(x_api_key)
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing user identity")
    caller = manager.resolve_caller(x_user_id, x_user_email, x_user_name)
    if not caller.is_admin:
        raise HTTPException(status_code=403, detail="Administrator access required")


@app.get("/healthz")
def healthcheck() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/statuses", response_model=WorkflowMetadata)
def get_statuses(manager: JobManager = Depends(get_job_manager)) -> WorkflowMetadata:
    return manager.get_workflow_metadata()


# Users


@app.post("/users/sync", response_model=UserRef)
def sync_user(caller: Caller = Depends(get_caller), manager: JobManager = Depends(get_job_manager)) -> UserRef:
    return UserRef(user_id=manager.sync_user(caller))


@app.get("/users/me", response_model=User)
def get_current_user(caller: Caller = Depends(get_caller), manager: JobManager = Depends(get_job_manager)) -> User:
    return manager.get_user_by_external_id(caller, caller.external_id)


@app.get("/users/{external_id}", response_model=User)
def get_user(
    external_id: str,
    caller: Caller = Depends(get_caller),
    manager: JobManager = Depends(get_job_manager),
) -> User:
    return manager.get_user_by_external_id(caller, external_id)


@app.get("/users/{external_id}/is-admin")
def is_user_admin(
    external_id: str,
    caller: Caller = Depends(get_caller),
    manager: JobManager = Depends(get_job_manager),
) -> Dict[str, bool]:
    return {"is_admin": manager.is_user_admin(caller, external_id)}


@app.put("/admin/users/{external_id}/admin", response_model=UserRef, dependencies=[Depends(require_admin_or_master)])
def set_user_admin(
    external_id: str,
    payload: AdminFlagUpdate,
    manager: JobManager = Depends(get_job_manager),
) -> UserRef:
    return UserRef(user_id=manager.set_user_admin(external_id, payload.is_admin))


# Uploads and jobs


@app.post("/uploads/ticket", response_model=UploadTicket)
def request_upload_ticket(
    payload: UploadTicketRequest,
    caller: Caller = Depends(get_caller),
    manager: JobManager = Depends(get_job_manager),
) -> UploadTicket:
    return manager.request_upload_ticket(caller, payload.file_name, payload.file_size_bytes)


@app.post("/jobs", response_model=Job, status_code=201)
def create_job(
    payload: JobCreateRequest,
    caller: Caller = Depends(get_caller),
    manager: JobManager = Depends(get_job_manager),
) -> Job:
    return manager.submit_job(
        caller,
        file_ref=payload.file_ref,
        file_name=payload.file_name,
        file_size_bytes=payload.file_size_bytes,
        user_note=payload.user_note,
    )


@app.get("/jobs", response_model=List[Job])
def list_jobs(
    owner_id: Optional[str] = None,
    caller: Caller = Depends(get_caller),
    manager: JobManager = Depends(get_job_manager),
) -> List[Job]:
    return manager.list_jobs_by_owner(caller, owner_id)


@app.get("/jobs/{job_id}", response_model=Job)
def get_job(job_id: str, caller: Caller = Depends(get_caller), manager: JobManager = Depends(get_job_manager)) -> Job:
    return manager.get_job(caller, job_id)


@app.get("/jobs/{job_id}/file", response_model=FileUrl)
def get_job_file(job_id: str, caller: Caller = Depends(get_caller), manager: JobManager = Depends(get_job_manager)) -> FileUrl:
    url = manager.get_job_file_url(caller, job_id)
    return FileUrl(url=url, expires_in=manager.storage.download_expiration)


# Admin


@app.get("/admin/jobs", response_model=List[Job])
def list_all_jobs(
    status: Optional[JobStatus] = None,
    caller: Caller = Depends(get_caller),
    manager: JobManager = Depends(get_job_manager),
) -> List[Job]:
    if status is not None:
        return manager.list_jobs_by_status(caller, status)
    return manager.list_all_jobs(caller)


@app.put("/admin/jobs/{job_id}/status", response_model=Job)
def set_job_status(
    job_id: str,
    payload: StatusUpdate,
    caller: Caller = Depends(get_caller),
    manager: JobManager = Depends(get_job_manager),
) -> Job:
    return manager.set_job_status(caller, job_id, payload.status)


@app.put("/admin/jobs/{job_id}/admin-note", response_model=Job)
def set_job_admin_note(
    job_id: str,
    payload: AdminNoteUpdate,
    caller: Caller = Depends(get_caller),
    manager: JobManager = Depends(get_job_manager),
) -> Job:
    return manager.set_job_admin_note(caller, job_id, payload.admin_note)


@app.get("/admin/files/{file_ref:path}", response_model=FileUrl)
def get_file_url(file_ref: str, caller: Caller = Depends(get_caller), manager: JobManager = Depends(get_job_manager)) -> FileUrl:
    url = manager.get_file_url(caller, file_ref)
    return FileUrl(url=url, expires_in=manager.storage.download_expiration)


@app.delete("/admin/files/{file_ref:path}")
def delete_file(file_ref: str, caller: Caller = Depends(get_caller), manager: JobManager = Depends(get_job_manager)) -> Dict[str, str]:
    manager.delete_file(caller, file_ref)
    return {"status": "deleted"}
