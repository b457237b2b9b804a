from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from devcosts.database import get_db
from ..clock import utc_today
from ..models import User
from ..schemas import Dashboard
from ..spend_summary import build_dashboard
from ..auth import get_current_active_user

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("", response_model=Dashboard)
def get_dashboard(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return build_dashboard(db, current_user.id, utc_today())
