"""Tasks router - API endpoints for treatment tasks and their notes."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from practice.core.access_policy import OfficeScope
from practice.core.deps import (
    get_current_user,
    get_db,
    get_office_scope,
    require_csrf_header,
)
from practice.db.enums import TaskStatus
from practice.schemas.task import (
    TaskAssign,
    TaskCreate,
    TaskListResponse,
    TaskNoteCreate,
    TaskNoteRead,
    TaskRead,
    TaskUpdate,
)
from practice.services import task_service

router = APIRouter()


@router.get("", response_model=TaskListResponse)
def list_tasks(
    assignee: str | None = Query(None, description="Filter by assignee display name"),
    patient_id: UUID | None = None,
    status: TaskStatus | None = None,
    scope: OfficeScope = Depends(get_office_scope),
    db: Session = Depends(get_db),
):
    """List tasks in the caller's office scope."""
    tasks = task_service.list_tasks(
        db, scope, assignee=assignee, patient_id=patient_id, status=status
    )
    return TaskListResponse(items=tasks, total=len(tasks))


@router.post(
    "",
    response_model=TaskRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_task(
    data: TaskCreate,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create a task. The office comes from the patient."""
    return task_service.create_task(db, user, data)


@router.get("/{task_id}", response_model=TaskRead)
def get_task(
    task_id: UUID,
    scope: OfficeScope = Depends(get_office_scope),
    db: Session = Depends(get_db),
):
    return task_service.get_task(db, scope, task_id)


@router.patch(
    "/{task_id}", response_model=TaskRead, dependencies=[Depends(require_csrf_header)]
)
def update_task(
    task_id: UUID,
    data: TaskUpdate,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return task_service.update_task(db, user, task_id, data)


@router.post(
    "/{task_id}/assign",
    response_model=TaskRead,
    dependencies=[Depends(require_csrf_header)],
)
def assign_task(
    task_id: UUID,
    data: TaskAssign,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Reassign a task to another staff member of the office."""
    return task_service.assign_task(db, user, task_id, data.assignee)


@router.post(
    "/{task_id}/complete",
    response_model=TaskRead,
    dependencies=[Depends(require_csrf_header)],
)
def complete_task(
    task_id: UUID,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return task_service.complete_task(db, user, task_id)


@router.post(
    "/{task_id}/cancel",
    response_model=TaskRead,
    dependencies=[Depends(require_csrf_header)],
)
def cancel_task(
    task_id: UUID,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Cancel a task (tasks are never deleted)."""
    return task_service.cancel_task(db, user, task_id)


# =============================================================================
# Notes (append-only)
# =============================================================================

@router.get("/{task_id}/notes", response_model=list[TaskNoteRead])
def list_notes(
    task_id: UUID,
    scope: OfficeScope = Depends(get_office_scope),
    db: Session = Depends(get_db),
):
    return task_service.list_notes(db, scope, task_id)


@router.post(
    "/{task_id}/notes",
    response_model=TaskNoteRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def add_note(
    task_id: UUID,
    data: TaskNoteCreate,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return task_service.add_note(
        db, user, task_id, content=data.content, image_refs=data.image_refs
    )
