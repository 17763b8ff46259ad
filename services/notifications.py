"""
Email notifications for quiz assignments and completions.

Every send returns a NotificationResult instead of raising, so callers can
log a failed delivery and carry on with the request.
"""
import asyncio
import html
import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List, Optional

import config

logger = logging.getLogger(__name__)


@dataclass
class NotificationResult:
    success: bool
    error: Optional[str] = None


class EmailNotificationSender:
    """Sends notification emails over SMTP."""

    def __init__(self, server: str = None, port: int = None, username: str = None,
                 password: str = None, from_email: str = None, use_tls: bool = None):
        self.server = server or config.SMTP_SERVER
        self.port = port or config.SMTP_PORT
        self.username = config.SMTP_USERNAME if username is None else username
        self.password = config.SMTP_PASSWORD if password is None else password
        self.from_email = from_email or config.SMTP_FROM_EMAIL or self.username
        self.use_tls = config.SMTP_USE_TLS if use_tls is None else use_tls

    async def send_assignment_created(self, to_email: str, user_name: str, quiz_title: str,
                                      assigner_name: str, quiz_url: str) -> NotificationResult:
        subject = f"New quiz assigned: {quiz_title}"
        text = f"""
Hello {user_name},

{assigner_name} has assigned you the quiz "{quiz_title}".

Start it here: {quiz_url}

Good luck!
"""
        body_html = f"""
<html>
  <body>
    <h2>New quiz assigned</h2>
    <p>Hello {html.escape(user_name)},</p>
    <p><strong>{html.escape(assigner_name)}</strong> has assigned you the quiz <strong>{html.escape(quiz_title)}</strong>.</p>
    <p><a href="{html.escape(quiz_url)}">Take the quiz</a></p>
    <p>Good luck!</p>
  </body>
</html>
"""
        return await self._send(to_email, subject, text, body_html)

    async def send_assignment_summary_to_creator(self, to_email: str, creator_name: str, quiz_title: str,
                                                 assigned_users: List[dict]) -> NotificationResult:
        subject = f"Quiz assigned: {quiz_title}"
        lines = [f"{u.get('firstName', '')} {u.get('lastName', '')} <{u.get('email', '')}>" for u in assigned_users]
        text = f"""
Hello {creator_name},

Your quiz "{quiz_title}" was assigned to {len(assigned_users)} user(s):

""" + "\n".join(f"- {line}" for line in lines) + "\n"
        items = "".join(f"<li>{html.escape(line)}</li>" for line in lines)
        body_html = f"""
<html>
  <body>
    <h2>Quiz assigned</h2>
    <p>Hello {html.escape(creator_name)},</p>
    <p>Your quiz <strong>{html.escape(quiz_title)}</strong> was assigned to {len(assigned_users)} user(s):</p>
    <ul>{items}</ul>
  </body>
</html>
"""
        return await self._send(to_email, subject, text, body_html)

    async def send_completion_notice(self, to_email: str, recipient_name: str, quiz_title: str,
                                     score: int, total_questions: int, other_party_name: str) -> NotificationResult:
        percentage = round(score / total_questions * 100) if total_questions else 0
        subject = f"Quiz completed: {quiz_title}"
        text = f"""
Hello {recipient_name},

The assigned quiz "{quiz_title}" has been completed ({other_party_name}).

Score: {score}/{total_questions} ({percentage}%)
"""
        body_html = f"""
<html>
  <body>
    <h2>Quiz completed</h2>
    <p>Hello {html.escape(recipient_name)},</p>
    <p>The assigned quiz <strong>{html.escape(quiz_title)}</strong> has been completed ({html.escape(other_party_name)}).</p>
    <p>Score: <strong>{score}/{total_questions}</strong> ({percentage}%)</p>
  </body>
</html>
"""
        return await self._send(to_email, subject, text, body_html)

    async def _send(self, to_email: str, subject: str, text: str, body_html: str) -> NotificationResult:
        if not self.username or not self.password:
            return NotificationResult(False, "Email configuration is missing.")
        return await asyncio.to_thread(self._send_sync, to_email, subject, text, body_html)

    def _send_sync(self, to_email: str, subject: str, text: str, body_html: str) -> NotificationResult:
        try:
            msg = MIMEMultipart("alternative")
            msg["From"] = self.from_email
            msg["To"] = to_email
            msg["Subject"] = subject
            msg.attach(MIMEText(text, "plain"))
            msg.attach(MIMEText(body_html, "html"))

            with smtplib.SMTP(self.server, self.port, timeout=10) as server:
                if self.use_tls:
                    server.starttls()
                server.login(self.username, self.password)
                server.send_message(msg)

            logger.info(f"Email '{subject}' sent to {to_email}")
            return NotificationResult(True)
        except smtplib.SMTPAuthenticationError as e:
            return NotificationResult(False, f"SMTP authentication failed: {str(e)}")
        except (smtplib.SMTPException, OSError) as e:
            return NotificationResult(False, f"Failed to send email: {str(e)}")


notification_sender = EmailNotificationSender()


def get_notifier():
    return notification_sender


async def best_effort(send, description: str) -> NotificationResult:
    """Await a notification send and log its outcome; delivery problems never reach the caller."""
    try:
        result = await send
    except Exception as e:
        logger.error(f"Notification '{description}' raised: {str(e)}", exc_info=True)
        return NotificationResult(False, str(e))
    if result.success:
        logger.info(f"Notification '{description}' delivered")
    else:
        logger.warning(f"Notification '{description}' failed: {result.error}")
    return result
