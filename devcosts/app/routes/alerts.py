from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List

from devcosts.database import get_db
from devcosts.app import models, schemas
from devcosts.app.auth import get_current_active_user
from devcosts.app.dependencies import get_registry
from devcosts.app.usage_sync import ProviderRegistry

router = APIRouter(prefix="/alerts", tags=["alerts"])


def _get_owned_alert(db: Session, alert_id: int, user: models.User) -> models.Alert:
    alert = db.query(models.Alert).filter(
        models.Alert.id == alert_id,
        models.Alert.user_id == user.id
    ).first()
    if not alert:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Alert not found")
    return alert


@router.get("", response_model=List[schemas.Alert])
def list_alerts(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user)
):
    return db.query(models.Alert).filter(
        models.Alert.user_id == current_user.id
    ).order_by(models.Alert.created_at.desc(), models.Alert.id.desc()).all()


@router.post("", response_model=schemas.Alert, status_code=status.HTTP_201_CREATED)
def create_alert(
    alert: schemas.AlertCreate,
    db: Session = Depends(get_db),
    registry: ProviderRegistry = Depends(get_registry),
    current_user: models.User = Depends(get_current_active_user)
):
    """
    Create an alert rule.

    Provider alerts need the id of an implemented provider; budget and
    anomaly alerts must not name one. For anomaly alerts threshold_cents is
    the multiplier x 100 (200 fires at twice the 30-day daily average).
    """
    if alert.type == models.AlertType.PROVIDER:
        if not alert.provider:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Provider is required for provider alerts"
            )
        if not registry.is_active(alert.provider):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid provider: {alert.provider}"
            )
    elif alert.provider:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Provider must not be set for {alert.type.value} alerts"
        )

    db_alert = models.Alert(
        user_id=current_user.id,
        type=alert.type,
        provider=alert.provider,
        threshold_cents=alert.threshold_cents,
        is_active=True
    )
    db.add(db_alert)
    db.commit()
    db.refresh(db_alert)
    return db_alert


@router.patch("/{alert_id}", response_model=schemas.Alert)
def update_alert(
    alert_id: int,
    update: schemas.AlertUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user)
):
    alert = _get_owned_alert(db, alert_id, current_user)
    alert.is_active = update.is_active
    db.commit()
    db.refresh(alert)
    return alert


@router.delete("/{alert_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_alert(
    alert_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user)
):
    alert = _get_owned_alert(db, alert_id, current_user)
    db.delete(alert)
    db.commit()


@router.get("/{alert_id}/history", response_model=List[schemas.AlertHistory])
def get_alert_history(
    alert_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user)
):
    alert = _get_owned_alert(db, alert_id, current_user)
    return alert.history
