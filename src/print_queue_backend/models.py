from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    PENDING = "pending"
    QUEUED = "queued"
    PRINTING = "printing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class FileKind(str, Enum):
    STL = "stl"
    THREE_MF = "3mf"
    OBJ = "obj"
    GCODE = "gcode"


class User(BaseModel):
    id: str
    external_id: str
    email: str
    display_name: str
    is_admin: bool = False
    created_at: datetime


class Job(BaseModel):
    id: str
    owner_id: str
    owner_display_name: str
    file_ref: str
    file_name: str
    file_kind: FileKind
    file_size_bytes: int
    status: JobStatus
    user_note: Optional[str] = None
    admin_note: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class UploadTicketRequest(BaseModel):
    file_name: str
    file_size_bytes: int


class UploadTicket(BaseModel):
    file_ref: str
    url: str
    fields: Dict[str, str]
    expires_in: int
    allowed_content_types: List[str]


class JobCreateRequest(BaseModel):
    file_ref: str
    file_name: str
    file_size_bytes: int
    user_note: Optional[str] = Field(default=None, max_length=2000)


class StatusUpdate(BaseModel):
    status: JobStatus


class AdminNoteUpdate(BaseModel):
    admin_note: Optional[str] = Field(default=None, max_length=2000)


class AdminFlagUpdate(BaseModel):
    is_admin: bool


class UserRef(BaseModel):
    user_id: str


class FileUrl(BaseModel):
    url: str
    expires_in: int


class StatusInfo(BaseModel):
    status: JobStatus
    label: str
    terminal: bool
    next_statuses: List[JobStatus]


class WorkflowMetadata(BaseModel):
    initial: JobStatus
    strict_transitions: bool
    statuses: List[StatusInfo]
