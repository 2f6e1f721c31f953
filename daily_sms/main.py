import logging
from daily_sms.api import SchedulerAPI
from daily_sms.backends import create_backend
from daily_sms.config import Config
from daily_sms.persistence import create_persistence
from daily_sms.service import SMSService

logger = logging.getLogger(__name__)


def configure_logging(config: Config):
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def build_service(config: Config) -> SMSService:
    """Wire store, backend and service together and start the schedule"""
    config.validate()
    persistence = create_persistence(config)
    backend = create_backend(config)
    service = SMSService(persistence, backend, config)
    service.start()
    return service


def main():
    """Main application entry point"""
    config = Config.from_env()
    configure_logging(config)
    logger.info("Starting daily SMS dispatcher...")

    service = build_service(config)
    api = SchedulerAPI(service, config)

    logger.info(f"API server starting on {config.API_HOST}:{config.API_PORT}")
    logger.info(f"Delivery backend: {service.backend.name} "
                f"(configured: {'Yes' if service.backend.is_configured() else 'No'})")
    logger.info(f"Send time: {service.schedule_config.send_time}")

    # Run API server (blocking)
    try:
        api.run()
    finally:
        service.stop()


if __name__ == '__main__':
    main()
