from daily_sms.api import SchedulerAPI
from daily_sms.config import Config
from daily_sms.main import build_service, configure_logging

# Build the full application exactly like main(), but WITHOUT calling app.run()
config = Config.from_env()
configure_logging(config)
service = build_service(config)
api = SchedulerAPI(service, config)

# Gunicorn needs 'app'
app = api.app
