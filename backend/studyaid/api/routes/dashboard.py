from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from studyaid.api.deps import require_user
from studyaid.db.session import get_db
from studyaid.models.user import User
from studyaid.services import dashboard_service

router = APIRouter(tags=["dashboard"])


@router.get("/dashboard")
def dashboard(request: Request, db: Session = Depends(get_db), user: User = Depends(require_user)):
    data = dashboard_service.get_dashboard(db, user=user).to_wire()
    return {"request_id": request.state.request_id, "data": data, "error": None}


@router.get("/dashboard/stats")
def dashboard_stats(request: Request, db: Session = Depends(get_db), user: User = Depends(require_user)):
    data = [s.to_wire() for s in dashboard_service.get_dashboard_stats(db, user_id=user.id)]
    return {"request_id": request.state.request_id, "data": data, "error": None}


@router.get("/dashboard/activity")
def dashboard_activity(
    request: Request,
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    data = [a.to_wire() for a in dashboard_service.get_recent_activity(db, user_id=user.id, limit=limit)]
    return {"request_id": request.state.request_id, "data": data, "error": None}


@router.get("/dashboard/performance")
def dashboard_performance(request: Request, db: Session = Depends(get_db), user: User = Depends(require_user)):
    data = [p.to_wire() for p in dashboard_service.get_performance(db, user_id=user.id)]
    return {"request_id": request.state.request_id, "data": data, "error": None}
