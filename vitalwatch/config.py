# ==================== CONFIGURATION ====================

import os
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()


def env_flag(name, default=False):
    """Read a 1/true/yes style flag from the environment"""
    value = os.getenv(name)
    if value is None or value == '':
        return default
    return value.strip().lower() in ('1', 'true', 'yes')


class Config:
    """Application configuration"""
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///patient_monitoring.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    JWT_SECRET_KEY = os.getenv('JWT_SECRET', SECRET_KEY)
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=7)
    PORT = int(os.getenv('PORT', '3001'))

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Live-update channel
    SOCKETIO_ASYNC_MODE = os.getenv('SOCKETIO_ASYNC_MODE', 'threading')
    SOCKETIO_PING_TIMEOUT = int(os.getenv('SOCKETIO_PING_TIMEOUT', '30'))
    SOCKETIO_PING_INTERVAL = int(os.getenv('SOCKETIO_PING_INTERVAL', '25'))

    # Patient identity
    DEFAULT_PATIENT_ID = os.getenv('DEFAULT_PATIENT_ID', 'P001')
    ALLOW_DYNAMIC_PATIENTS = env_flag('ALLOW_DYNAMIC_PATIENTS')

    # MQTT ingestion
    MQTT_ENABLED = env_flag('MQTT_ENABLED', True)
    MQTT_BROKER_URL = os.getenv('MQTT_BROKER_URL', 'mqtt://test.mosquitto.org:1883')
    MQTT_USERNAME = os.getenv('MQTT_USERNAME')
    MQTT_PASSWORD = os.getenv('MQTT_PASSWORD')
    MQTT_TOPIC = os.getenv('MQTT_TOPIC', 'health/vitals/#')
    MQTT_STRUCTURED_PREFIX = os.getenv('MQTT_STRUCTURED_PREFIX', 'health/vitals/')
    MQTT_CLIENT_ID = os.getenv('MQTT_CLIENT_ID', '')
    MQTT_KEEPALIVE = int(os.getenv('MQTT_KEEPALIVE', '60'))
    MQTT_RECONNECT_MIN_DELAY = int(os.getenv('MQTT_RECONNECT_MIN_DELAY', '3'))
    MQTT_RECONNECT_MAX_DELAY = int(os.getenv('MQTT_RECONNECT_MAX_DELAY', '3'))

    # Reading correlation (seconds)
    PAIRING_WINDOW_SECONDS = float(os.getenv('PAIRING_WINDOW_SECONDS', '15'))
    FALLBACK_PAIRING_WINDOW_SECONDS = float(os.getenv('FALLBACK_PAIRING_WINDOW_SECONDS', '10'))

    # Alert thresholds
    HEART_RATE_HIGH = int(os.getenv('HEART_RATE_HIGH', '100'))
    SPO2_LOW = int(os.getenv('SPO2_LOW', '90'))

    # Email (SMTP); an empty host means no outbound transport
    SMTP_HOST = os.getenv('SMTP_HOST', '')
    SMTP_PORT = int(os.getenv('SMTP_PORT', '465'))
    SMTP_SECURE = env_flag('SMTP_SECURE', SMTP_PORT == 465)
    SMTP_USER = os.getenv('SMTP_USER', '')
    SMTP_PASS = os.getenv('SMTP_PASS', '')
    SMTP_FROM = os.getenv('SMTP_FROM', '')
    SMTP_TIMEOUT = float(os.getenv('SMTP_TIMEOUT', '30'))
    ALERT_FALLBACK_EMAIL = os.getenv('ALERT_FALLBACK_EMAIL', '')


class TestConfig(Config):
    """In-memory database, no broker, no mail transport"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    JWT_SECRET_KEY = 'test-secret-key-with-enough-length-for-hs256'
    MQTT_ENABLED = False
    SMTP_HOST = ''
    ALERT_FALLBACK_EMAIL = 'oncall@example.com'
    DEFAULT_PATIENT_ID = 'P001'
    ALLOW_DYNAMIC_PATIENTS = False
    LOG_LEVEL = 'DEBUG'
