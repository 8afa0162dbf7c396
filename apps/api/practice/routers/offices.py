"""Offices router - tenant directory administration."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from practice.core.deps import (
    get_current_user,
    get_db,
    require_csrf_header,
    require_office_admin,
)
from practice.schemas.office import OfficeCreate, OfficeRead, OfficeRename
from practice.services import office_service

router = APIRouter()


@router.get("", response_model=list[OfficeRead])
def list_offices(
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    List offices.

    Restricted users only see their own office.
    """
    offices = office_service.list_offices(db)
    if user.can_view_all_offices:
        return offices
    return [o for o in offices if o.id == user.office_id]


@router.post(
    "",
    response_model=OfficeRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_office(
    data: OfficeCreate,
    user=Depends(require_office_admin),
    db: Session = Depends(get_db),
):
    """Create an office. Requires head office access."""
    return office_service.create_office(db, data.name, actor_user_id=user.id)


@router.patch(
    "/{office_id}",
    response_model=OfficeRead,
    dependencies=[Depends(require_csrf_header)],
)
def rename_office(
    office_id: UUID,
    data: OfficeRename,
    user=Depends(require_office_admin),
    db: Session = Depends(get_db),
):
    """Rename an office. Offices cannot be deleted."""
    return office_service.rename_office(db, office_id, data.name, actor_user_id=user.id)
