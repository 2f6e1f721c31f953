import logging
import threading
from typing import List, Tuple
from daily_sms.address import DEFAULT_CARRIER
from daily_sms.backends import DeliveryBackend
from daily_sms.config import Config
from daily_sms.dispatcher import Dispatcher
from daily_sms.exceptions import ConfigError, ValidationError
from daily_sms.message_queue import MessageQueue
from daily_sms.models import DispatchResult, Message, ScheduleConfig
from daily_sms.scheduler import DailyScheduler, format_send_time, parse_send_time

logger = logging.getLogger(__name__)


class SMSService:
    """
    Management surface over the queue, schedule and dispatcher.

    Owns the current ScheduleConfig. Config updates are serialized and
    always go store-first, then scheduler re-arm.
    """

    def __init__(self, persistence, backend: DeliveryBackend, config: Config = None,
                 scheduler_factory=DailyScheduler):
        self.config = config or Config.from_env()
        self.persistence = persistence
        self.backend = backend
        self.queue = MessageQueue(persistence)
        self.schedule_config = self._default_schedule_config()
        self.dispatcher = Dispatcher(self.queue, backend, lambda: self.schedule_config)
        self.scheduler = scheduler_factory(self.dispatcher.run_once)
        self.config_lock = threading.Lock()

    def _default_schedule_config(self) -> ScheduleConfig:
        return ScheduleConfig(
            destination='',
            send_time=self.config.DEFAULT_SEND_TIME,
            carrier=self.config.DEFAULT_CARRIER or DEFAULT_CARRIER
        )

    def start(self):
        """Load persisted state and arm the daily schedule"""
        self.queue.load()

        with self.config_lock:
            stored = self.persistence.load_config()
            if stored is None:
                logger.info("No existing config, starting fresh")
                stored = self._default_schedule_config()
                self.persistence.save_config(stored)
            else:
                logger.info("Config loaded")
            try:
                stored.send_time = format_send_time(*parse_send_time(stored.send_time))
                self.scheduler.configure(stored.send_time)
            except ConfigError as e:
                logger.error(f"Stored config is invalid ({e}), using default send time")
                stored.send_time = self.config.DEFAULT_SEND_TIME
                self.scheduler.configure(stored.send_time)
            self.schedule_config = stored

        logger.info(f"Service started: {len(self.queue.messages)} messages, send time {stored.send_time}")

    def stop(self):
        self.scheduler.shutdown()

    def list_messages(self) -> Tuple[List[Message], ScheduleConfig]:
        return self.queue.snapshot(), self.schedule_config

    def add_message(self, text) -> Message:
        return self.queue.enqueue(text)

    def delete_message(self, message_id) -> bool:
        try:
            message_id = int(message_id)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid message id: {message_id!r}")
        return self.queue.remove(message_id)

    def update_config(self, new_config: ScheduleConfig) -> ScheduleConfig:
        """
        Replace the schedule config wholesale, persist it, then re-arm.

        Nothing is persisted or re-armed when validation fails.
        """
        if not isinstance(new_config.destination, str):
            raise ValidationError("Phone number must be a string")
        if new_config.carrier is not None and not isinstance(new_config.carrier, str):
            raise ValidationError("Carrier must be a string")
        new_config.send_time = format_send_time(*parse_send_time(new_config.send_time))

        with self.config_lock:
            self.persistence.save_config(new_config)
            self.schedule_config = new_config
            self.scheduler.configure(new_config.send_time)

        logger.info(f"Config updated: {new_config.to_dict()}")
        return new_config

    def trigger_now(self) -> DispatchResult:
        logger.info("Manual send triggered")
        return self.dispatcher.run_once()

    def health(self) -> dict:
        counts = self.queue.counts()
        next_run = self.scheduler.next_run_at
        return {
            'status': 'healthy',
            'backendConfigured': bool(self.backend and self.backend.is_configured()),
            'backend': self.backend.name if self.backend else None,
            'messagesQueued': counts['queued'],
            'messagesSent': counts['sent'],
            'config': self.schedule_config.to_dict(),
            'schedulerState': self.scheduler.state.value,
            'nextRunAt': next_run.isoformat() if next_run else None
        }
