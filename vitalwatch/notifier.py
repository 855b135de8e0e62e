# ==================== EMAIL ====================

import logging
import re
import smtplib
from email.message import EmailMessage

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'[^@\s]+@[^@\s]+\.[^@\s]+')
DEFAULT_SENDER = 'no-reply@example.com'


def is_valid_email(address):
    return bool(address) and EMAIL_PATTERN.search(str(address)) is not None


class SmtpMailer:
    """Outbound SMTP transport"""

    def __init__(self, host, port=465, secure=True, user='', password='', timeout=30.0):
        self.host = host
        self.port = port
        self.secure = secure
        self.user = user
        self.password = password
        self.timeout = timeout

    @classmethod
    def from_config(cls, config):
        """None when no SMTP host is configured"""
        if not config.get('SMTP_HOST'):
            return None
        return cls(
            host=config['SMTP_HOST'],
            port=config.get('SMTP_PORT', 465),
            secure=config.get('SMTP_SECURE', True),
            user=config.get('SMTP_USER', ''),
            password=config.get('SMTP_PASS', ''),
            timeout=config.get('SMTP_TIMEOUT', 30.0),
        )

    def send(self, sender, to, subject, body, bcc=None):
        msg = EmailMessage()
        msg['Subject'] = subject
        msg['From'] = sender
        msg['To'] = to
        if bcc:
            msg['Bcc'] = ', '.join(bcc)
        msg.set_content(body)

        smtp_class = smtplib.SMTP_SSL if self.secure else smtplib.SMTP
        with smtp_class(self.host, self.port, timeout=self.timeout) as smtp:
            if not self.secure and self.port == 587:
                smtp.starttls()
            if self.user and self.password:
                smtp.login(self.user, self.password)
            smtp.send_message(msg)
