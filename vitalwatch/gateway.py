# ==================== MQTT INGESTION ====================

import logging
import time
from contextlib import nullcontext
from urllib.parse import urlparse

import paho.mqtt.client as mqtt
from flask import has_app_context

from .correlator import ReadingCorrelator
from .parsing import Emergency, Full, MalformedPayload, Partial, parse_message
from .thresholds import HEART_RATE_HIGH, SPO2_LOW, emergency_alert, evaluate

logger = logging.getLogger(__name__)

DEFAULT_PORTS = {'mqtt': 1883, 'tcp': 1883, 'mqtts': 8883, 'ssl': 8883, 'ws': 80, 'wss': 443}


class IngestionGateway:
    """Bridges the broker subscription to correlation, storage and alerting.

    Every message is handled to completion inside an application context;
    nothing raised while handling one message escapes the broker callback.
    """

    def __init__(self, app, persister, disseminator, correlator=None,
                 topic='health/vitals/#', structured_prefix='health/vitals/',
                 heart_rate_high=HEART_RATE_HIGH, spo2_low=SPO2_LOW, clock=time.time):
        self.app = app
        self.persister = persister
        self.disseminator = disseminator
        self.correlator = correlator if correlator is not None else ReadingCorrelator()
        self.topic = topic
        self.structured_prefix = structured_prefix
        self.heart_rate_high = heart_rate_high
        self.spo2_low = spo2_low
        self.clock = clock
        self.client = None

    @property
    def default_patient_id(self):
        return self.persister.default_patient_id

    # ---------- broker wiring ----------

    def start(self):
        """Connect in the background; the client reconnects on its own"""
        config = self.app.config
        url = urlparse(config['MQTT_BROKER_URL'])
        scheme = url.scheme or 'mqtt'
        transport = 'websockets' if scheme in ('ws', 'wss') else 'tcp'

        client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=config.get('MQTT_CLIENT_ID') or '',
            transport=transport,
        )
        if scheme in ('mqtts', 'ssl', 'wss'):
            client.tls_set()
        if config.get('MQTT_USERNAME'):
            client.username_pw_set(config['MQTT_USERNAME'], config.get('MQTT_PASSWORD'))
        client.reconnect_delay_set(
            min_delay=config['MQTT_RECONNECT_MIN_DELAY'],
            max_delay=config['MQTT_RECONNECT_MAX_DELAY'],
        )
        client.on_connect = self._on_connect
        client.on_subscribe = self._on_subscribe
        client.on_disconnect = self._on_disconnect
        client.on_message = self._on_message

        try:
            client.connect_async(url.hostname, url.port or DEFAULT_PORTS.get(scheme, 1883),
                                 keepalive=config['MQTT_KEEPALIVE'])
            client.loop_start()
        except Exception as e:
            logger.error(f"MQTT init failed: {str(e)}")
        self.client = client
        return client

    def stop(self):
        if self.client is None:
            return
        self.client.disconnect()
        self.client.loop_stop()
        self.client = None

    def _on_connect(self, client, userdata, flags, reason_code, properties):
        if reason_code.is_failure:
            logger.error(f"MQTT connect refused: {reason_code}")
            return
        logger.info(f"MQTT connected to {self.app.config['MQTT_BROKER_URL']}")
        client.subscribe(self.topic)

    def _on_subscribe(self, client, userdata, mid, reason_code_list, properties):
        for reason_code in reason_code_list:
            if reason_code.is_failure:
                logger.error(f"MQTT subscribe error on {self.topic}: {reason_code}")
            else:
                logger.info(f"MQTT subscribed to {self.topic}")

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties):
        logger.warning(f"MQTT disconnected ({reason_code}); waiting for reconnect")

    def _on_message(self, client, userdata, msg):
        self.handle_message(msg.topic, msg.payload)

    # ---------- message handling ----------

    def handle_message(self, topic, payload, now=None):
        now = self.clock() if now is None else now
        try:
            reading = parse_message(topic, payload, self.structured_prefix)
        except MalformedPayload as e:
            logger.warning(f"Dropped message on {topic}: {str(e)}")
            return

        context = nullcontext() if has_app_context() else self.app.app_context()
        try:
            with context:
                self.route(reading, now)
        except Exception as e:
            logger.error(f"MQTT message handling failed on {topic}: {str(e)}")

    def route(self, reading, now):
        if isinstance(reading, Partial):
            self.handle_partial(reading, now)
        elif isinstance(reading, Emergency):
            self.handle_emergency(reading)
        elif isinstance(reading, Full):
            self.handle_full(reading)
        else:
            self.handle_fallback()

    def handle_partial(self, reading, now):
        paired = self.correlator.observe(reading.kind, reading.value, now)
        wrote = False
        if paired is not None:
            vital = self.persister.record(self.default_patient_id, paired.heart_rate, paired.spo2)
            if vital is not None:
                wrote = True
                # only the rule for the stream that just arrived fires here
                for decision in self.evaluate(paired.heart_rate, paired.spo2):
                    if decision.type == reading.kind:
                        self.disseminator.raise_alert(self.default_patient_id, decision)
        if not wrote:
            self.handle_fallback()

    def handle_fallback(self):
        paired = self.correlator.fallback()
        if paired is None:
            return
        vital = self.persister.record(self.default_patient_id, paired.heart_rate, paired.spo2)
        if vital is None:
            return
        for decision in self.evaluate(paired.heart_rate, paired.spo2):
            self.disseminator.raise_alert(self.default_patient_id, decision)

    def handle_full(self, reading):
        if not self.persister.patient_allowed(reading.patient_id):
            logger.warning(f"Dropped reading for disallowed patient {reading.patient_id}")
            return
        vital = self.persister.record(reading.patient_id, reading.heart_rate, reading.spo2)
        if vital is None:
            return
        for decision in self.evaluate(reading.heart_rate, reading.spo2):
            self.disseminator.raise_alert(reading.patient_id, decision)

    def handle_emergency(self, reading):
        patient_id = self.default_patient_id
        snapshot = self.correlator.snapshot()
        heart_rate, spo2 = snapshot.heart_rate, snapshot.spo2
        if heart_rate is None or spo2 is None:
            try:
                latest = self.persister.latest(patient_id)
            except Exception as e:
                logger.error(f"Could not load latest vitals for {patient_id}: {str(e)}")
                latest = None
            if latest is not None:
                heart_rate = heart_rate if heart_rate is not None else latest.heart_rate
                spo2 = spo2 if spo2 is not None else latest.spo2

        if not self.persister.ensure_patient(patient_id):
            logger.warning(f"Dropped emergency for unknown patient {patient_id}")
            return
        self.disseminator.raise_alert(patient_id, emergency_alert(reading.message, heart_rate, spo2))
        if heart_rate is not None or spo2 is not None:
            self.persister.record(patient_id, heart_rate, spo2)

    def evaluate(self, heart_rate, spo2):
        return evaluate(heart_rate, spo2, heart_rate_high=self.heart_rate_high, spo2_low=self.spo2_low)
