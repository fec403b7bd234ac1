from email.message import EmailMessage
import smtplib
from typing import Protocol

from .config import Settings


class EmailSender(Protocol):
    def send(self, to: str, subject: str, html_body: str) -> bool: ...


class SmtpMailer:
    def __init__(self, settings: Settings):
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.username = settings.smtp_username
        self.password = settings.smtp_password
        self.sender = settings.mail_from

    def send(self, to: str, subject: str, html_body: str) -> bool:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content("This message requires an HTML capable mail client.")
        msg.add_alternative(html_body, subtype="html")
        with smtplib.SMTP(self.host, self.port, timeout=15) as smtp:
            smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password)
            refused = smtp.send_message(msg)
        return to not in refused
