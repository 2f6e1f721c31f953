import os
from dataclasses import dataclass

from dotenv import load_dotenv
load_dotenv()

STORE_BACKENDS = ('file', 's3')
DELIVERY_BACKENDS = ('twilio', 'email_gateway', 'ses')


@dataclass
class Config:
    """Application configuration from environment variables"""

    # Logging
    LOG_LEVEL: str = os.getenv('LOG_LEVEL', 'INFO')

    # API Configuration
    API_HOST: str = os.getenv('API_HOST', '0.0.0.0')
    API_PORT: int = int(os.getenv('API_PORT', '3000'))

    # Storage
    STORE_BACKEND: str = os.getenv('STORE_BACKEND', 'file')
    DATA_DIR: str = os.getenv('DATA_DIR', 'data')

    # AWS Configuration (S3 store and SES delivery)
    AWS_REGION: str = os.getenv('AWS_REGION', 'us-east-1')
    AWS_ACCESS_KEY_ID: str = os.getenv('AWS_ACCESS_KEY_ID')
    AWS_SECRET_ACCESS_KEY: str = os.getenv('AWS_SECRET_ACCESS_KEY')
    ENDPOINT_URL: str = os.getenv('ENDPOINT_URL')
    S3_BUCKET: str = os.getenv('S3_BUCKET')
    S3_PREFIX: str = os.getenv('S3_PREFIX', 'daily-sms')

    # Delivery
    DELIVERY_BACKEND: str = os.getenv('DELIVERY_BACKEND', 'email_gateway')
    SEND_TIMEOUT: float = float(os.getenv('SEND_TIMEOUT', '30'))

    # Twilio
    TWILIO_ACCOUNT_SID: str = os.getenv('TWILIO_ACCOUNT_SID')
    TWILIO_AUTH_TOKEN: str = os.getenv('TWILIO_AUTH_TOKEN')
    TWILIO_PHONE_NUMBER: str = os.getenv('TWILIO_PHONE_NUMBER')

    # Email-to-SMS gateway (SMTP)
    EMAIL_SERVICE: str = os.getenv('EMAIL_SERVICE', 'gmail')
    SMTP_HOST: str = os.getenv('SMTP_HOST')
    SMTP_PORT: int = int(os.getenv('SMTP_PORT', '587'))
    EMAIL_USER: str = os.getenv('EMAIL_USER')
    EMAIL_PASS: str = os.getenv('EMAIL_PASS')

    # Amazon SES
    SES_SENDER: str = os.getenv('SES_SENDER')

    # Schedule defaults used until a config has been saved
    DEFAULT_SEND_TIME: str = os.getenv('DEFAULT_SEND_TIME', '12:00')
    DEFAULT_CARRIER: str = os.getenv('DEFAULT_CARRIER', 'att')

    @classmethod
    def from_env(cls):
        """Create config from environment variables"""
        return cls()

    def is_local(self) -> bool:
        """Check if AWS calls go to a local endpoint (LocalStack)"""
        return self.ENDPOINT_URL is not None

    def aws_client_kwargs(self) -> dict:
        """Keyword arguments shared by every boto3 client we create"""
        kwargs = {'region_name': self.AWS_REGION}
        if self.AWS_ACCESS_KEY_ID and self.AWS_SECRET_ACCESS_KEY:
            kwargs['aws_access_key_id'] = self.AWS_ACCESS_KEY_ID
            kwargs['aws_secret_access_key'] = self.AWS_SECRET_ACCESS_KEY
        if self.is_local():
            kwargs['endpoint_url'] = self.ENDPOINT_URL
        return kwargs

    def validate(self):
        """Validate required configuration"""
        if self.STORE_BACKEND not in STORE_BACKENDS:
            raise ValueError(f"STORE_BACKEND must be one of {STORE_BACKENDS}")
        if self.DELIVERY_BACKEND not in DELIVERY_BACKENDS:
            raise ValueError(f"DELIVERY_BACKEND must be one of {DELIVERY_BACKENDS}")

        if self.STORE_BACKEND == 's3' and not self.S3_BUCKET:
            raise ValueError("S3_BUCKET must be set when STORE_BACKEND is 's3'")

        # Missing delivery credentials are not fatal: the dispatcher reports
        # the backend as unconfigured until they are provided.
        return True
