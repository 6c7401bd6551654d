"""
Monthly maintenance scheduler.

check_and_run_monthly_maintenance() is idempotent per month: the first call
creates fresh zeroed fairness rows for every member and writes a
SystemMaintenance(MONTHLY_RESET, month) marker; later calls for the same
month find the marker and do nothing. Prior months' rows are never touched
and speed profiles are never reset here.

The month is always passed explicitly ("YYYY-MM"); callers that want "now"
use current_month().
"""

import logging
import re
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from teelottery.models.system_maintenance import MANUAL_MAINTENANCE, MONTHLY_RESET, SystemMaintenance
from teelottery.services.fairness import ensure_month_rows
from teelottery.utils.time_format import month_key

logger = logging.getLogger(__name__)

MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")

MONTHLY_FAILURE_MESSAGE = "Failed to run monthly maintenance"
MANUAL_FAILURE_MESSAGE = "Failed to run manual maintenance"


class MaintenanceAlreadyRun(Exception):
    """Monthly reset already recorded for the month"""

    pass


class MaintenanceResult:
    """Structured result from a maintenance operation"""

    def __init__(
        self,
        success: bool,
        maintenance_type: str,
        month: Optional[str],
        records_affected: int = 0,
        notes: Optional[str] = None,
        already_run: bool = False,
        error: Optional[str] = None,
    ):
        self.success = success
        self.maintenance_type = maintenance_type
        self.month = month
        self.records_affected = records_affected
        self.notes = notes
        self.already_run = already_run
        self.error = error

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "maintenance_type": self.maintenance_type,
            "month": self.month,
            "records_affected": self.records_affected,
            "notes": self.notes,
            "already_run": self.already_run,
            "error": self.error,
        }


def current_month() -> str:
    return month_key(datetime.utcnow().date())


def validate_month(month: str) -> str:
    if not isinstance(month, str) or not MONTH_PATTERN.match(month):
        raise ValueError(f"Invalid month '{month}', expected YYYY-MM")
    return month


def get_marker(session: Session, maintenance_type: str, month: str) -> Optional[SystemMaintenance]:
    return session.exec(
        select(SystemMaintenance).where(
            SystemMaintenance.maintenance_type == maintenance_type,
            SystemMaintenance.month == month,
        )
    ).first()


def _ensure_not_run(session: Session, month: str) -> None:
    if get_marker(session, MONTHLY_RESET, month) is not None:
        raise MaintenanceAlreadyRun(month)


def check_and_run_monthly_maintenance(session: Session, month: str) -> MaintenanceResult:
    """
    Run the monthly fairness reset for month if it has not been run yet.

    A repeat call returns success with records_affected=0.
    """
    validate_month(month)

    try:
        _ensure_not_run(session, month)
    except MaintenanceAlreadyRun:
        logger.info("MAINTENANCE: monthly reset already completed month=%s", month)
        return MaintenanceResult(
            success=True,
            maintenance_type=MONTHLY_RESET,
            month=month,
            records_affected=0,
            notes=f"Maintenance already completed for {month}",
            already_run=True,
        )

    try:
        created = ensure_month_rows(session, month)
        marker = SystemMaintenance(
            maintenance_type=MONTHLY_RESET,
            month=month,
            records_affected=created,
            notes=f"Created {created} fairness rows for {month}",
        )
        session.add(marker)
        session.commit()
    except IntegrityError:
        # A concurrent caller recorded the marker first; its rows are ours too
        session.rollback()
        logger.info("MAINTENANCE: monthly reset marker raced month=%s", month)
        return MaintenanceResult(
            success=True,
            maintenance_type=MONTHLY_RESET,
            month=month,
            records_affected=0,
            notes=f"Maintenance already completed for {month}",
            already_run=True,
        )
    except SQLAlchemyError:
        session.rollback()
        logger.exception("MAINTENANCE: monthly reset failed month=%s", month)
        return MaintenanceResult(
            success=False,
            maintenance_type=MONTHLY_RESET,
            month=month,
            error=MONTHLY_FAILURE_MESSAGE,
        )

    logger.info("MAINTENANCE: monthly reset month=%s records_affected=%s", month, created)
    return MaintenanceResult(
        success=True,
        maintenance_type=MONTHLY_RESET,
        month=month,
        records_affected=created,
        notes=marker.notes,
    )


def trigger_manual_maintenance(session: Session, month: str) -> MaintenanceResult:
    """Run the fairness reset for month without the already-run check; upserts a MANUAL_MAINTENANCE marker."""
    validate_month(month)

    try:
        created = ensure_month_rows(session, month)
        notes = f"Manual maintenance created {created} fairness rows for {month}"

        marker = get_marker(session, MANUAL_MAINTENANCE, month)
        if marker is None:
            marker = SystemMaintenance(maintenance_type=MANUAL_MAINTENANCE, month=month)
        marker.completed_at = datetime.utcnow()
        marker.records_affected = created
        marker.notes = notes
        session.add(marker)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("MAINTENANCE: manual reset failed month=%s", month)
        return MaintenanceResult(
            success=False,
            maintenance_type=MANUAL_MAINTENANCE,
            month=month,
            error=MANUAL_FAILURE_MESSAGE,
        )

    logger.info("MAINTENANCE: manual reset month=%s records_affected=%s", month, created)
    return MaintenanceResult(
        success=True,
        maintenance_type=MANUAL_MAINTENANCE,
        month=month,
        records_affected=created,
        notes=notes,
    )
