from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from bars.db import get_db
from bars.deps import SessionUser, require_tenant
from bars.errors import NotFound
from bars.models.core import Report
from bars.schemas.reports import ReportIn
from bars.services.reports import build_sales_report

router = APIRouter(prefix="/{tenant_id}/reports", tags=["reports"])


def _row_from_report(r: Report) -> dict:
    return {
        "id": r.id,
        "title": r.title,
        "period": r.period,
        "start_date": r.start_date.isoformat() if r.start_date else None,
        "end_date": r.end_date.isoformat() if r.end_date else None,
        "created_at": r.created_at.isoformat() if r.created_at else None,
        "data": r.data,
    }


@router.get("")
def list_reports(tenant_id: str, db: Session = Depends(get_db), s: SessionUser = Depends(require_tenant)):
    rows = db.query(Report).filter(Report.tenant_id == tenant_id).order_by(Report.created_at.desc()).all()
    return [_row_from_report(r) for r in rows]


@router.post("", status_code=201)
def create_report(tenant_id: str, body: ReportIn, db: Session = Depends(get_db), s: SessionUser = Depends(require_tenant)):
    r = build_sales_report(db, tenant_id, body.period, body.from_, body.to, creator_id=s.user_id)
    return _row_from_report(r)


@router.get("/{report_id}")
def get_report(tenant_id: str, report_id: str, db: Session = Depends(get_db), s: SessionUser = Depends(require_tenant)):
    r = db.query(Report).filter(Report.id == report_id, Report.tenant_id == tenant_id).first()
    if not r:
        raise NotFound("report not found")
    return _row_from_report(r)
