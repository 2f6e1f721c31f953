from flask import Flask, request, jsonify
import logging
from daily_sms.address import supported_carriers
from daily_sms.exceptions import ConfigError, PersistenceError, ValidationError
from daily_sms.models import ScheduleConfig
from daily_sms.service import SMSService

logger = logging.getLogger(__name__)


class SchedulerAPI:
    """Web API for the daily SMS dispatcher"""

    def __init__(self, service: SMSService, config):
        self.service = service
        self.config = config
        self.app = Flask(__name__)
        self._setup_routes()

    def _setup_routes(self):
        """Setup Flask routes"""

        @self.app.errorhandler(ValidationError)
        @self.app.errorhandler(ConfigError)
        def bad_request(e):
            return jsonify({'status': 'error', 'message': str(e)}), 400

        @self.app.errorhandler(PersistenceError)
        def storage_failed(e):
            logger.error(f"Storage error: {e}")
            return jsonify({'status': 'error', 'message': str(e)}), 500

        @self.app.route('/')
        def index():
            """Status summary"""
            health = self.service.health()
            return jsonify({
                'status': 'Server is running!',
                'backendConfigured': health['backendConfigured'],
                'messagesCount': health['messagesQueued'] + health['messagesSent'],
                'config': health['config']
            })

        @self.app.route('/api/messages', methods=['GET'])
        def list_messages():
            """All messages and the current schedule config"""
            messages, schedule_config = self.service.list_messages()
            return jsonify({
                'messages': [m.to_dict() for m in messages],
                'config': schedule_config.to_dict()
            })

        @self.app.route('/api/messages', methods=['POST'])
        def add_message():
            """Queue a new message"""
            data = request.get_json(silent=True) or {}
            message = self.service.add_message(data.get('text'))
            return jsonify({'success': True, 'message': message.to_dict()})

        @self.app.route('/api/messages/<message_id>', methods=['DELETE'])
        def delete_message(message_id):
            """Delete a message by id"""
            if not self.service.delete_message(message_id):
                return jsonify({'status': 'error', 'message': f'Message {message_id} not found'}), 404
            return jsonify({'success': True})

        @self.app.route('/api/config', methods=['GET', 'POST'])
        def manage_config():
            """Get or replace the schedule config"""
            if request.method == 'GET':
                _, schedule_config = self.service.list_messages()
                return jsonify(schedule_config.to_dict())

            data = request.get_json(silent=True) or {}
            new_config = ScheduleConfig(
                destination=data.get('phoneNumber', ''),
                send_time=data.get('sendTime') or self.config.DEFAULT_SEND_TIME,
                carrier=data.get('carrier') or self.config.DEFAULT_CARRIER
            )
            saved = self.service.update_config(new_config)
            return jsonify({'success': True, 'config': saved.to_dict()})

        @self.app.route('/api/carriers', methods=['GET'])
        def carriers():
            """Carrier tags accepted by the email gateway backends"""
            return jsonify({'carriers': supported_carriers()})

        @self.app.route('/api/send-now', methods=['POST'])
        def send_now():
            """Run one dispatch immediately"""
            result = self.service.trigger_now()
            return jsonify(result.to_dict())

        @self.app.route('/api/health', methods=['GET'])
        def health():
            """Health check endpoint"""
            return jsonify(self.service.health())

    def run(self):
        """Run the Flask app"""
        self.app.run(
            host=self.config.API_HOST,
            port=self.config.API_PORT,
            debug=False,
            threaded=True
        )
