"""
ISP Project Manager
Scheduled Jobs.

Jobs:
    - billing_status_sweep: promote Completed projects with no billing status to Pending
    - stale_notification_cleanup: delete read notifications past the retention window
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from isp_manager.models import db
from isp_manager.models.notification import Notification
from isp_manager.services.billing_service import promote_completed_billing
from isp_manager.services.scheduler_service import register_job

logger = logging.getLogger(__name__)


@register_job("billing_status_sweep")
def sweep_billing_status(app) -> dict[str, Any]:
    """Set billing Pending on accepted Completed projects that have none."""
    promoted = promote_completed_billing()
    return {"promoted": len(promoted), "project_ids": promoted}


@register_job("stale_notification_cleanup")
def cleanup_stale_notifications(app) -> dict[str, Any]:
    """Delete read notifications older than NOTIFICATION_RETENTION_DAYS."""
    days = int(app.config.get("NOTIFICATION_RETENTION_DAYS", 90))
    cutoff = datetime.now(timezone.utc) - timedelta(days=days)
    deleted = (
        Notification.query
        .filter(Notification.is_read.is_(True), Notification.created_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.session.commit()
    if deleted:
        logger.info("Deleted %d read notifications older than %d days", deleted, days)
    return {"deleted": deleted, "retention_days": days}
