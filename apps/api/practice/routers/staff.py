"""Staff router - assignable roster for the task form."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from practice.core.deps import (
    get_current_user,
    get_db,
    require_csrf_header,
    require_office_admin,
)
from practice.core.errors import ValidationError
from practice.schemas.office import StaffCreate, StaffRead
from practice.services import office_service, staff_service

router = APIRouter()


@router.get("", response_model=list[StaffRead])
def list_visible_staff(
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Staff the current user may assign (own office, or all for head office)."""
    roster = staff_service.load_roster(db)
    return staff_service.visible_staff(user, roster)


@router.post(
    "",
    response_model=StaffRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def add_staff_member(
    data: StaffCreate,
    user=Depends(require_office_admin),
    db: Session = Depends(get_db),
):
    if office_service.get_office(db, data.office_id) is None:
        raise ValidationError("Office not found", field="office_id")
    return staff_service.add_staff_member(db, data.office_id, data.display_name)
