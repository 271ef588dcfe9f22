# storefront/services/mailer.py
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from storefront.utils.settings import SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASSWORD, MAIL_FROM
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class Mailer:
    """Wysylka maili HTML + tekst przez SMTP. Uzywany tylko z taskow celery."""

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        user: str | None = None,
        password: str | None = None,
        sender: str | None = None,
        timeout: int = 10,
    ):
        self.host = host or SMTP_HOST
        self.port = port or SMTP_PORT
        self.user = SMTP_USER if user is None else user
        self.password = SMTP_PASSWORD if password is None else password
        self.sender = sender or MAIL_FROM
        self.timeout = timeout

    def build_message(self, to_email: str, subject: str, html: str, text: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = to_email
        # kolejnosc ma znaczenie, klient wybiera ostatnia czesc ktora umie pokazac
        msg.attach(MIMEText(text, "plain", "utf-8"))
        msg.attach(MIMEText(html, "html", "utf-8"))
        return msg

    def send(self, to_email: str, subject: str, html: str, text: str) -> bool:
        msg = self.build_message(to_email, subject, html, text)
        logger.info(f"Wysylanie maila '{subject}' do {to_email} przez {self.host}:{self.port}")

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.user:
                smtp.starttls()
                smtp.login(self.user, self.password)
            smtp.sendmail(self.sender, [to_email], msg.as_string())

        logger.info(f"Mail wyslany do {to_email}")
        return True
