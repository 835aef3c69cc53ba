"""
Print Queue Backend - REST API for 3D print job submission

This package provides a FastAPI-based web service where users submit
3D-printable files and administrators move the resulting print jobs through
a fixed workflow. It enables:

- Upload validation (.stl, .3mf, .obj, .gcode up to 50MB)
- Two-phase uploads through presigned S3 tickets
- Job records with pending/queued/printing/completed/failed/cancelled status
- Owner-only access for users, full access for administrators
- A local user mirror synced from the external identity provider

Key Components:
    - main: FastAPI application and HTTP endpoint definitions
    - job_manager: Service layer applying access rules to every operation
    - database: Job Store (SQLite)
    - user_store: User Store (SQLite)
    - storage: S3 upload tickets, download URLs and deletion
    - workflow: Status state machine
    - authorization: Caller context and admin-or-owner checks
    - validation: Upload constraints
    - configuration: Settings loading and logging setup

Usage:
    Run the API server with:
        uvicorn print_queue_backend.main:app --reload --host 0.0.0.0 --port 8000

    Or use the development script:
        uv run uvicorn print_queue_backend.main:app --reload
"""
