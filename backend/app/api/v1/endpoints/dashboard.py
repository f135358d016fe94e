"""Manager endpoints: shift actions on behalf of staff, hours correction, finance."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.orm import Session

from backend.app.api.deps import get_business_staff
from backend.app.api.permission_deps import require_permission
from backend.app.core.database import get_db
from backend.app.core.exceptions import ShiftConflictError
from backend.app.models.shift import StaffShift
from backend.app.models.user import User
from backend.app.schemas.finance import FinanceSummaryResponse, PeriodEnum
from backend.app.schemas.shift import (
    HoursUpdateRequest,
    OkOut,
    ShiftCloseOut,
    ShiftItemsSaveRequest,
    ShiftOpenOut,
    ShiftOut,
)
from backend.app.services.business_time import business_date
from backend.app.services.finance import get_finance_summary
from backend.app.services.shift_items import replace_items
from backend.app.services.shifts import (
    adjust_hours,
    close_shift,
    get_open_shift,
    open_shift,
    shift_to_out,
)

router = APIRouter()


def _client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


# ─── Shifts on behalf of staff ───────────────────────────────────────────────


@router.post("/staff/{staff_id}/shift/open", response_model=ShiftOpenOut)
def open_staff_shift(
    staff_id: UUID,
    request: Request,
    response: Response,
    shift_date: date | None = Query(default=None, alias="date"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("shift:manage")),
) -> ShiftOpenOut:
    staff = get_business_staff(db, current_user, staff_id)
    try:
        result = open_shift(
            db, staff, shift_date=shift_date,
            actor_id=current_user.id, ip_address=_client_ip(request),
        )
    except ShiftConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    response.status_code = status.HTTP_201_CREATED if result.created else status.HTTP_200_OK
    return ShiftOpenOut(
        created=result.created,
        late_minutes=result.late_minutes,
        shift=shift_to_out(result.shift),
    )


@router.post("/staff/{staff_id}/shift/items", response_model=OkOut)
def save_staff_items(
    staff_id: UUID,
    payload: ShiftItemsSaveRequest,
    request: Request,
    shift_date: date | None = Query(default=None, alias="date"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("shift:manage")),
) -> OkOut:
    staff = get_business_staff(db, current_user, staff_id)
    try:
        shift = get_open_shift(db, staff.id, shift_date or business_date())
        replace_items(
            db, shift, payload.items,
            actor_id=current_user.id, ip_address=_client_ip(request),
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return OkOut()


@router.post("/staff/{staff_id}/shift/close", response_model=ShiftCloseOut)
def close_staff_shift(
    staff_id: UUID,
    request: Request,
    shift_date: date | None = Query(default=None, alias="date"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("shift:manage")),
) -> ShiftCloseOut:
    staff = get_business_staff(db, current_user, staff_id)
    try:
        shift = get_open_shift(db, staff.id, shift_date or business_date())
        shift, report = close_shift(
            db, shift, actor_id=current_user.id, ip_address=_client_ip(request)
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return ShiftCloseOut(
        shift=shift_to_out(shift),
        bookings_updated=len(report.succeeded),
        booking_errors=report.errors,
    )


@router.post("/staff-shifts/{shift_id}/update-hours", response_model=ShiftOut)
def update_shift_hours(
    shift_id: UUID,
    payload: HoursUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("shift:manage")),
) -> ShiftOut:
    shift = db.get(StaffShift, shift_id)
    if shift is None or shift.business_id != current_user.business_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shift not found")
    try:
        shift = adjust_hours(
            db, shift, payload.hours_worked,
            actor_id=current_user.id, ip_address=_client_ip(request),
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return shift_to_out(shift)


# ─── Finance ─────────────────────────────────────────────────────────────────


@router.get("/finance", response_model=FinanceSummaryResponse)
def finance_summary(
    period: PeriodEnum = Query(default=PeriodEnum.DAY),
    value: str | None = Query(default=None, alias="date"),
    branch_id: UUID | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("finance:read")),
) -> FinanceSummaryResponse:
    if current_user.business_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="User is not attached to a business"
        )
    try:
        return get_finance_summary(
            db, current_user.business_id, period, value, branch_id=branch_id
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
