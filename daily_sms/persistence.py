import boto3
import json
import logging
import os
import tempfile
from typing import List, Optional
from botocore.exceptions import BotoCoreError, ClientError
from daily_sms.config import Config
from daily_sms.exceptions import PersistenceError
from daily_sms.models import Message, ScheduleConfig

logger = logging.getLogger(__name__)

MESSAGES_NAME = 'messages.json'
CONFIG_NAME = 'config.json'


class JSONFilePersistenceLayer:
    """
    Stores the message list and schedule config as two JSON files.

    Every save writes a temporary file next to the target and renames it
    into place, so a reader never observes a half-written file and a failed
    save leaves the previous contents untouched.
    """

    def __init__(self, data_dir: str):
        self.data_dir = data_dir
        self.messages_path = os.path.join(data_dir, MESSAGES_NAME)
        self.config_path = os.path.join(data_dir, CONFIG_NAME)

        try:
            os.makedirs(self.data_dir, exist_ok=True)
        except OSError as e:
            logger.error(f"Failed to create data directory {self.data_dir}: {e}")
            raise PersistenceError(str(e)) from e
        logger.info(f"Data directory '{self.data_dir}' ready")

    def load_messages(self) -> List[Message]:
        data = self._read(self.messages_path)
        if data is None:
            return []
        return [Message.from_dict(item) for item in data]

    def save_messages(self, messages: List[Message]):
        self._write(self.messages_path, [m.to_dict() for m in messages])

    def load_config(self) -> Optional[ScheduleConfig]:
        data = self._read(self.config_path)
        if data is None:
            return None
        return ScheduleConfig.from_dict(data)

    def save_config(self, config: ScheduleConfig):
        self._write(self.config_path, config.to_dict())

    def _read(self, path: str):
        """Return parsed JSON, or None if the file does not exist yet"""
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read {path}: {e}")
            raise PersistenceError(f"Failed to read {path}: {e}") from e

    def _write(self, path: str, payload):
        fd, tmp_path = tempfile.mkstemp(dir=self.data_dir, prefix='.tmp-', suffix='.json')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(payload, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
            logger.debug(f"Saved {path}")
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to save {path}: {e}")
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise PersistenceError(f"Failed to save {path}: {e}") from e


class S3PersistenceLayer:
    """Stores the message list and schedule config as two S3 objects"""

    def __init__(self, config: Config, s3_client=None):
        self.config = config
        self.s3_client = s3_client or boto3.client('s3', **config.aws_client_kwargs())
        self.bucket = config.S3_BUCKET
        self.messages_key = f"{config.S3_PREFIX}/{MESSAGES_NAME}"
        self.config_key = f"{config.S3_PREFIX}/{CONFIG_NAME}"

        # Ensure bucket exists (for LocalStack)
        self._ensure_bucket_exists()

    def _ensure_bucket_exists(self):
        """Create bucket if it doesn't exist (mainly for LocalStack)"""
        try:
            self.s3_client.head_bucket(Bucket=self.bucket)
            logger.info(f"S3 bucket '{self.bucket}' exists")
        except ClientError as e:
            error_code = e.response['Error']['Code']

            # Possible 'bucket does not exist' codes:
            not_found_errors = {"404", "NoSuchBucket", "NotFound"}
            if error_code in not_found_errors:
                try:
                    self.s3_client.create_bucket(Bucket=self.bucket)
                    logger.info(f"Created S3 bucket '{self.bucket}'")
                except ClientError as create_error:
                    logger.error(f"Failed to create bucket: {create_error}")
            else:
                logger.error(f"Error checking bucket: {e}")

    def load_messages(self) -> List[Message]:
        data = self._get(self.messages_key)
        if data is None:
            return []
        return [Message.from_dict(item) for item in data]

    def save_messages(self, messages: List[Message]):
        body = json.dumps([m.to_dict() for m in messages], indent=2)
        self._put(self.messages_key, body)

    def load_config(self) -> Optional[ScheduleConfig]:
        data = self._get(self.config_key)
        if data is None:
            return None
        return ScheduleConfig.from_dict(data)

    def save_config(self, config: ScheduleConfig):
        self._put(self.config_key, config.to_json())

    def _get(self, key: str):
        try:
            response = self.s3_client.get_object(Bucket=self.bucket, Key=key)
            json_str = response['Body'].read().decode('utf-8')
            return json.loads(json_str)
        except ClientError as e:
            if e.response['Error']['Code'] in ('NoSuchKey', '404'):
                return None
            logger.error(f"Failed to load {key}: {e}")
            raise PersistenceError(f"Failed to load {key}: {e}") from e
        except (BotoCoreError, ValueError) as e:
            logger.error(f"Failed to load {key}: {e}")
            raise PersistenceError(f"Failed to load {key}: {e}") from e

    def _put(self, key: str, body: str):
        # A single PUT replaces the object atomically; readers see old or new
        try:
            self.s3_client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=body.encode('utf-8'),
                ContentType='application/json'
            )
            logger.debug(f"Saved s3://{self.bucket}/{key}")
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to save {key}: {e}")
            raise PersistenceError(f"Failed to save {key}: {e}") from e


def create_persistence(config: Config):
    """Build the durable store selected by STORE_BACKEND"""
    if config.STORE_BACKEND == 's3':
        return S3PersistenceLayer(config)
    return JSONFilePersistenceLayer(config.DATA_DIR)
