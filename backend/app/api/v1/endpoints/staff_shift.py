from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from backend.app.api.deps import get_staff_profile
from backend.app.api.permission_deps import require_permission
from backend.app.core.database import get_db
from backend.app.core.exceptions import ShiftConflictError
from backend.app.middleware.rate_limit import shift_write_limiter
from backend.app.models.user import User
from backend.app.schemas.shift import (
    OkOut,
    ShiftCloseOut,
    ShiftItemsSaveRequest,
    ShiftOpenOut,
    ShiftTodayOut,
)
from backend.app.services.business_time import business_date
from backend.app.services.shift_items import replace_items
from backend.app.services.shifts import (
    close_shift,
    get_open_shift,
    open_shift,
    shift_to_out,
    today_view,
)

router = APIRouter()


def _client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


@router.post("/open", response_model=ShiftOpenOut)
def open_own_shift(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("shift:own")),
) -> ShiftOpenOut:
    staff = get_staff_profile(db, current_user)
    shift_write_limiter.check(f"shift:{staff.id}")
    try:
        result = open_shift(
            db, staff, actor_id=current_user.id, ip_address=_client_ip(request)
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


@router.post("/items", response_model=OkOut)
def save_own_items(
    payload: ShiftItemsSaveRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("shift:own")),
) -> OkOut:
    staff = get_staff_profile(db, current_user)
    shift_write_limiter.check(f"shift:{staff.id}")
    try:
        shift = get_open_shift(db, staff.id, business_date())
        replace_items(
            db, shift, payload.items,
            actor_id=current_user.id, ip_address=_client_ip(request),
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return OkOut()


@router.post("/close", response_model=ShiftCloseOut)
def close_own_shift(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("shift:own")),
) -> ShiftCloseOut:
    staff = get_staff_profile(db, current_user)
    shift_write_limiter.check(f"shift:{staff.id}")
    try:
        shift = get_open_shift(db, staff.id, business_date())
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


@router.get("/today", response_model=ShiftTodayOut)
def get_today(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("shift:own")),
) -> ShiftTodayOut:
    staff = get_staff_profile(db, current_user)
    return today_view(db, staff)
