import logging
import re
import threading
from datetime import date, datetime
from enum import Enum
from typing import Callable, Optional, Tuple

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from daily_sms.exceptions import ConfigError

logger = logging.getLogger(__name__)

JOB_ID = 'daily_dispatch'

_SEND_TIME = re.compile(r'^(\d{1,2}):(\d{2})$')


class SchedulerState(Enum):
    IDLE = "IDLE"
    ARMED = "ARMED"


def parse_send_time(send_time: str) -> Tuple[int, int]:
    """Parse a 24-hour "HH:MM" string into (hour, minute)"""
    match = _SEND_TIME.match(send_time.strip()) if isinstance(send_time, str) else None
    if not match:
        raise ConfigError(f"Send time must be HH:MM, got {send_time!r}")

    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ConfigError(f"Send time out of range: {send_time!r}")
    return hour, minute


def format_send_time(hour: int, minute: int) -> str:
    return f"{hour:02d}:{minute:02d}"


class DailyScheduler:
    """
    Keeps exactly one daily cron job armed for the configured send time.

    Architecture:
    - One APScheduler BackgroundScheduler, one job under a fixed id
    - configure() replaces the job in place (replace_existing), so there is
      never a second armed job; stop() removes it
    - IDLE until the first configure(), ARMED afterwards until stop()
    - At most one scheduled dispatch per local calendar day for a given
      configuration; an early or repeated fire on the same day is skipped

    Send times are local wall-clock times of the server (the scheduler's
    default timezone).
    """

    def __init__(self, dispatch: Callable[[], object], scheduler: BackgroundScheduler = None,
                 now: Callable[[], datetime] = datetime.now):
        self.dispatch = dispatch
        self.scheduler = scheduler or BackgroundScheduler()
        self.now = now

        # Serializes configure/stop and the fire bookkeeping
        self.lock = threading.Lock()

        self.state = SchedulerState.IDLE
        self._send_time: Optional[Tuple[int, int]] = None
        self._last_fire_date: Optional[date] = None

    @property
    def send_time(self) -> Optional[str]:
        if self._send_time is None:
            return None
        return format_send_time(*self._send_time)

    @property
    def job(self):
        return self.scheduler.get_job(JOB_ID)

    @property
    def next_run_at(self) -> Optional[datetime]:
        job = self.job
        return job.next_run_time if job else None

    def configure(self, send_time: str):
        """
        Arm the daily job for send_time, replacing any armed job.

        A malformed send_time raises ConfigError and leaves the current
        schedule untouched.
        """
        hour, minute = parse_send_time(send_time)

        with self.lock:
            if not self.scheduler.running:
                self.scheduler.start()

            self.scheduler.add_job(
                self._run_scheduled,
                CronTrigger(hour=hour, minute=minute),
                id=JOB_ID,
                name=f'Daily message dispatch ({format_send_time(hour, minute)})',
                replace_existing=True,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=300
            )
            self._send_time = (hour, minute)
            self._last_fire_date = None
            self.state = SchedulerState.ARMED

        logger.info(f"⏰ Scheduling messages for {self.send_time} daily (next run {self.next_run_at})")

    def stop(self):
        """Disarm the scheduler; the background thread keeps running"""
        with self.lock:
            if self.job is not None:
                self.scheduler.remove_job(JOB_ID)
            self.state = SchedulerState.IDLE
        logger.info("Scheduler stopped")

    def shutdown(self):
        """Disarm and stop the background thread"""
        self.stop()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    def _run_scheduled(self):
        with self.lock:
            today = self.now().date()
            if self._last_fire_date == today:
                logger.warning(f"Skipping repeated scheduled run on {today}")
                return
            self._last_fire_date = today

        logger.info("⏰ Running scheduled task...")
        try:
            result = self.dispatch()
            logger.info(f"Scheduled dispatch finished: {getattr(result, 'status', result)}")
        except Exception as e:
            logger.error(f"Error in scheduled dispatch: {e}", exc_info=True)
