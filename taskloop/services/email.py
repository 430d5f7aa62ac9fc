"""Transactional email over SMTP."""

import logging
import smtplib
import socket
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from flask import current_app

logger = logging.getLogger(__name__)


class EmailService:
    """Sends mail with the SMTP settings from the app config.

    Without SMTP credentials nothing is sent and ``send_email`` returns
    False.
    """

    def _settings(self):
        config = current_app.config
        return {
            'host': config.get('SMTP_HOST'),
            'port': config.get('SMTP_PORT', 587),
            'user': config.get('SMTP_USER'),
            'password': config.get('SMTP_PASSWORD'),
            'from_email': config.get('FROM_EMAIL') or config.get('SMTP_USER'),
            'from_name': config.get('FROM_NAME', 'TaskLoop'),
            'timeout': config.get('SMTP_TIMEOUT', 10),
        }

    def is_configured(self):
        settings = self._settings()
        return bool(settings['host'] and settings['user'] and settings['password'])

    def send_email(self, to_email, subject, html_content, text_content=None):
        if not self.is_configured():
            logger.warning(f'SMTP not configured, email "{subject}" to {to_email} not sent')
            return False

        settings = self._settings()
        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = f"{settings['from_name']} <{settings['from_email']}>"
        msg['To'] = to_email
        if text_content:
            msg.attach(MIMEText(text_content, 'plain'))
        msg.attach(MIMEText(html_content, 'html'))

        try:
            with smtplib.SMTP(settings['host'], settings['port'], timeout=settings['timeout']) as server:
                server.starttls()
                server.login(settings['user'], settings['password'])
                server.sendmail(settings['from_email'], to_email, msg.as_string())
        except socket.timeout:
            logger.error(f"SMTP connection timed out after {settings['timeout']}s")
            return False
        except smtplib.SMTPException as e:
            logger.error(f'SMTP error sending to {to_email}: {e}')
            return False

        logger.info(f'Sent email "{subject}" to {to_email}')
        return True

    def send_password_reset_email(self, to_email, username, reset_token):
        frontend_url = current_app.config.get('FRONTEND_URL', 'http://localhost:5173').rstrip('/')
        reset_link = f'{frontend_url}/reset-password?token={reset_token}'

        html_content = f"""
        <p>Hi <strong>{username}</strong>,</p>
        <p>We received a request to reset your TaskLoop password.</p>
        <p><a href="{reset_link}">Reset your password</a></p>
        <p>This link expires in 1 hour. If you didn't ask for it, ignore this email.</p>
        """
        text_content = (
            f'Hi {username},\n\n'
            f'Reset your TaskLoop password here:\n{reset_link}\n\n'
            'This link expires in 1 hour. If you didn\'t ask for it, ignore this email.\n'
        )
        return self.send_email(to_email, 'Reset your TaskLoop password', html_content, text_content)


email_service = EmailService()
