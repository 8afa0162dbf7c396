"""Milestones router - treatment pipeline progress."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from practice.core.access_policy import OfficeScope
from practice.core.deps import (
    get_current_user,
    get_db,
    get_office_scope,
    require_csrf_header,
)
from practice.schemas.milestone import (
    MilestoneCreate,
    MilestoneRead,
    MilestoneTransition,
    PipelineCreate,
)
from practice.services import milestone_service

router = APIRouter()


@router.post(
    "",
    response_model=MilestoneRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_milestone(
    data: MilestoneCreate,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return milestone_service.create_milestone(
        db,
        user,
        data.patient_id,
        data.name,
        assignee=data.assignee,
        due_date=data.due_date,
        task_id=data.task_id,
    )


@router.post(
    "/pipeline",
    response_model=list[MilestoneRead],
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_pipeline(
    data: PipelineCreate,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Append the treatment pipeline (default or given names) to a patient."""
    return milestone_service.create_pipeline(db, user, data.patient_id, names=data.names)


@router.get("/{milestone_id}", response_model=MilestoneRead)
def get_milestone(
    milestone_id: UUID,
    scope: OfficeScope = Depends(get_office_scope),
    db: Session = Depends(get_db),
):
    return milestone_service.get_milestone(db, scope, milestone_id)


@router.post(
    "/{milestone_id}/transition",
    response_model=MilestoneRead,
    dependencies=[Depends(require_csrf_header)],
)
def transition_milestone(
    milestone_id: UUID,
    data: MilestoneTransition,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Move a milestone forward.

    pending -> in_progress -> completed. Completed milestones cannot change.
    """
    return milestone_service.transition_milestone(
        db, user, milestone_id, data.status, assignee=data.assignee
    )
