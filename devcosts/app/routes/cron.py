"""
Scheduled Job Routes

Called by an external scheduler with "Authorization: Bearer <CRON_SECRET>".
Both GET and POST are accepted so any cron service can trigger them.
"""

from fastapi import APIRouter, Depends

from devcosts.app import schemas
from devcosts.app.alert_evaluator import AlertEvaluator
from devcosts.app.auth import verify_cron_secret
from devcosts.app.dependencies import get_alert_evaluator, get_sync_service
from devcosts.app.usage_sync import UsageSyncService

router = APIRouter(prefix="/cron", tags=["cron"], dependencies=[Depends(verify_cron_secret)])


@router.api_route("/sync-all", methods=["GET", "POST"], response_model=schemas.CronSyncResponse)
async def sync_all(service: UsageSyncService = Depends(get_sync_service)):
    summary = await service.sync_all()
    return schemas.CronSyncResponse(
        message="Sync complete",
        success=summary.success,
        failed=summary.failed,
        errors=summary.errors
    )


@router.api_route("/check-alerts", methods=["GET", "POST"], response_model=schemas.CronAlertResponse)
def check_alerts(evaluator: AlertEvaluator = Depends(get_alert_evaluator)):
    summary = evaluator.evaluate_all()
    return schemas.CronAlertResponse(message="Alert check complete", triggered=summary.triggered)
