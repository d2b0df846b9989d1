# app/worker/expiry_job.py
"""
Daily document-expiry scan.

For every organization and every configured warning threshold N, documents
expiring on local day today+N are handed to the notification fan-out.
Failures are counted and logged per organization, threshold, document and
recipient; a run always completes.

Only one scan runs at a time per process. Running several API instances
against one database needs an external lock (e.g. a database advisory
lock) around run_once; nothing here coordinates across processes.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import asdict, dataclass
from datetime import date, datetime, time as dtime, timedelta, timezone as dt_timezone
from typing import Any, Callable, Dict, Optional, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy.orm import sessionmaker

from app.core.config import Settings
from app.crud.documents import DocumentReader
from app.crud.organizations import OrganizationReader
from app.crud.users import UserReader
from app.services.compliance_status import as_utc_naive
from app.services.email import EmailService
from app.services.expiry_notifications import ExpiryNotifier
from app.services.notifications import NotificationService
from app.worker.scheduler import add_cron_job, make_scheduler

log = logging.getLogger("app.jobs.expiry")

JOB_ID = "document_expiry_scan"

IDLE = "IDLE"
RUNNING = "RUNNING"


def _utcnow() -> datetime:
    return datetime.utcnow()


def _to_utc_naive(value: datetime) -> datetime:
    return value.astimezone(dt_timezone.utc).replace(tzinfo=None)


def local_today(now: datetime, tz: str) -> date:
    """Calendar date of the instant `now` (naive means UTC) in zone `tz`."""
    return as_utc_naive(now).replace(tzinfo=dt_timezone.utc).astimezone(ZoneInfo(tz)).date()


def expiry_window(today: date, days_ahead: int, tz: str) -> Tuple[datetime, datetime]:
    """
    Half-open [start, end) covering local day today+days_ahead in `tz`,
    returned as naive UTC to match stored timestamps.
    """
    zone = ZoneInfo(tz)
    target = today + timedelta(days=days_ahead)
    start = datetime.combine(target, dtime.min, tzinfo=zone)
    end = datetime.combine(target + timedelta(days=1), dtime.min, tzinfo=zone)
    return _to_utc_naive(start), _to_utc_naive(end)


@dataclass(frozen=True)
class ExpiryJobConfig:
    warning_days: Tuple[int, ...] = (30, 14, 7, 1)
    cron_schedule: str = "0 9 * * *"
    timezone: str = "UTC"
    enabled: bool = True
    manager_alert_max_days: int = 7
    warning_window_days: int = 30

    @classmethod
    def from_settings(cls, settings: Settings) -> "ExpiryJobConfig":
        return cls(
            warning_days=tuple(settings.expiry_warning_days),
            cron_schedule=settings.expiry_job_cron,
            timezone=settings.timezone,
            enabled=settings.expiry_job_enabled,
            manager_alert_max_days=settings.manager_alert_max_days,
            warning_window_days=settings.compliance_warning_days,
        )


@dataclass
class ExpiryRunSummary:
    started_at: datetime
    organizations_total: int = 0
    organizations_processed: int = 0
    documents_matched: int = 0
    notifications_sent: int = 0
    emails_sent: int = 0
    errors: int = 0
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class DocumentExpiryJob:
    def __init__(
        self,
        session_factory: sessionmaker,
        email_service: EmailService,
        config: ExpiryJobConfig,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.session_factory = session_factory
        self.email_service = email_service
        self.config = config
        self.clock = clock

        self._lock = threading.Lock()
        self._state = IDLE
        self._scheduler = None
        self.last_run: Optional[ExpiryRunSummary] = None

    # ---- lifecycle -------------------------------------------------------

    def start(self) -> None:
        if not self.config.enabled:
            log.info("document expiry job disabled; not scheduling")
            return
        if self._scheduler is not None:
            return

        sched = make_scheduler(self.config.timezone)
        add_cron_job(
            sched,
            self.run_once,
            job_id=JOB_ID,
            crontab=self.config.cron_schedule,
            timezone=self.config.timezone,
        )
        sched.start()
        self._scheduler = sched
        log.info(
            "document expiry job scheduled cron=%r tz=%s thresholds=%s",
            self.config.cron_schedule,
            self.config.timezone,
            list(self.config.warning_days),
        )

    def stop(self) -> None:
        if self._scheduler is None:
            return
        # wait=False: a scan in progress finishes on its own thread
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        log.info("document expiry job stopped")

    @property
    def running(self) -> bool:
        return self._state == RUNNING

    def next_run(self) -> Optional[datetime]:
        if self._scheduler is None:
            return None
        job = self._scheduler.get_job(JOB_ID)
        return getattr(job, "next_run_time", None) if job else None

    def get_status(self) -> Dict[str, Any]:
        return {
            "enabled": self.config.enabled,
            "running": self.running,
            "scheduled": self._scheduler is not None,
            "schedule": self.config.cron_schedule,
            "warning_days": list(self.config.warning_days),
            "timezone": self.config.timezone,
            "next_run": self.next_run(),
            "last_run": self.last_run.to_dict() if self.last_run else None,
        }

    # ---- run -------------------------------------------------------------

    def run_once(self, now: Optional[datetime] = None) -> Optional[ExpiryRunSummary]:
        """Scan once; returns None without doing anything if a scan is in progress."""
        if not self._lock.acquire(blocking=False):
            log.warning("document expiry scan already running; skipping trigger")
            return None
        self._state = RUNNING
        try:
            summary = self._run(as_utc_naive(now or self.clock()))
            self.last_run = summary
            return summary
        finally:
            self._state = IDLE
            self._lock.release()

    def _run(self, now: datetime) -> ExpiryRunSummary:
        summary = ExpiryRunSummary(started_at=now)
        t0 = time.monotonic()
        today = local_today(now, self.config.timezone)
        log.info("document expiry scan started today=%s tz=%s", today, self.config.timezone)

        try:
            db = self.session_factory()
        except Exception:
            log.exception("could not open a database session")
            summary.errors += 1
            summary.duration_ms = int((time.monotonic() - t0) * 1000)
            return summary

        try:
            try:
                organizations = OrganizationReader(db).list_organizations()
            except Exception:
                log.exception("could not enumerate organizations")
                db.rollback()
                summary.errors += 1
                organizations = []

            summary.organizations_total = len(organizations)
            documents = DocumentReader(db)
            notifier = ExpiryNotifier(
                NotificationService(db),
                self.email_service,
                UserReader(db),
                manager_alert_max_days=self.config.manager_alert_max_days,
            )

            for org in organizations:
                try:
                    self._scan_organization(org, today, documents, notifier, summary)
                    summary.organizations_processed += 1
                except Exception:
                    log.exception("expiry scan failed org=%s", org.get("id"))
                    db.rollback()
                    summary.errors += 1
        finally:
            db.close()

        summary.duration_ms = int((time.monotonic() - t0) * 1000)
        log.info(
            "document expiry scan finished organizations=%d/%d documents=%d notifications=%d "
            "emails=%d errors=%d duration_ms=%d",
            summary.organizations_processed,
            summary.organizations_total,
            summary.documents_matched,
            summary.notifications_sent,
            summary.emails_sent,
            summary.errors,
            summary.duration_ms,
        )
        return summary

    def _scan_organization(
        self,
        org: Dict[str, Any],
        today: date,
        documents: DocumentReader,
        notifier: ExpiryNotifier,
        summary: ExpiryRunSummary,
    ) -> None:
        org_id = org["id"]
        for days in self.config.warning_days:
            try:
                start, end = expiry_window(today, days, self.config.timezone)
                expiring = documents.find_documents_expiring_in_window(org_id, start, end)
            except Exception:
                log.exception("expiry query failed org=%s threshold=%s", org_id, days)
                documents.db.rollback()
                summary.errors += 1
                continue

            if expiring:
                log.info(
                    "org=%s threshold=%s: %d document(s) expiring", org_id, days, len(expiring)
                )
            for doc in expiring:
                summary.documents_matched += 1
                try:
                    fanout = notifier.notify_expiring_document(
                        doc, days, org_id, org.get("name")
                    )
                except Exception:
                    log.exception(
                        "fan-out failed org=%s threshold=%s document=%s", org_id, days, doc.id
                    )
                    documents.db.rollback()
                    summary.errors += 1
                    continue
                summary.notifications_sent += fanout.notifications_sent
                summary.emails_sent += fanout.emails_sent
                summary.errors += fanout.failures


def build_expiry_job(
    settings: Settings, session_factory: sessionmaker, email_service: EmailService
) -> DocumentExpiryJob:
    return DocumentExpiryJob(
        session_factory, email_service, ExpiryJobConfig.from_settings(settings)
    )
