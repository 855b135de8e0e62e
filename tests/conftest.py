"""Shared fixtures: in-memory app, recording publisher and fake mail transport."""

import smtplib

import pytest
from werkzeug.security import generate_password_hash

from vitalwatch import create_app, get_pipeline
from vitalwatch.config import TestConfig
from vitalwatch.extensions import db
from vitalwatch.models import Staff, init_db
from vitalwatch.publisher import Publisher


class RecordingPublisher(Publisher):
    """Keeps every published event instead of broadcasting it."""

    def __init__(self):
        self.events = []

    def publish(self, event, payload):
        self.events.append((event, payload))

    def of(self, event):
        return [payload for name, payload in self.events if name == event]


class FakeMailer:
    """Records send attempts; can reject the batched send or given addresses."""

    def __init__(self):
        self.attempts = []
        self.delivered = []
        self.fail_batch = False
        self.failing = set()

    def send(self, sender, to, subject, body, bcc=None):
        self.attempts.append({'to': to, 'bcc': list(bcc or []), 'subject': subject, 'body': body})
        if bcc and self.fail_batch:
            raise smtplib.SMTPException('batch rejected')
        if to in self.failing:
            raise smtplib.SMTPRecipientsRefused({to: (550, b'mailbox unavailable')})
        self.delivered.append({'to': to, 'bcc': list(bcc or [])})


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def app(publisher, mailer):
    app = create_app(TestConfig, publisher=publisher, mailer=mailer)
    with app.app_context():
        init_db()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def pipeline(app):
    return get_pipeline(app)


@pytest.fixture
def gateway(pipeline):
    return pipeline.gateway


@pytest.fixture
def add_staff(app):
    def _add(username, email, role='doctor', password='secret'):
        staff = Staff(
            employe_id=f"EMP-{username.upper()}",
            username=username,
            email=email,
            password_hash=generate_password_hash(password),
            role=role,
        )
        db.session.add(staff)
        db.session.commit()
        return staff
    return _add
