import logging
import smtplib
from datetime import datetime, timezone
from email.message import EmailMessage
from email.utils import make_msgid

from models.health import MailResult
from utils.config import Settings
from utils.logging_config import mask_email

logger = logging.getLogger("mailer")

SMTP_TIMEOUT = 30


def _now_iso() -> str:
	return datetime.now(timezone.utc).isoformat()


def send_html_email(settings: Settings, to: str, subject: str, html: str) -> MailResult:
	"""Send an HTML email over SMTP with STARTTLS.

	Failures are returned as an unsuccessful MailResult rather than raised,
	so callers can report delivery status alongside their own result.
	"""
	if not settings.smtp_configured:
		logger.warning("smtp_not_configured", extra={"email": mask_email(to)})
		return MailResult(success=False, error="SMTP credentials are not configured", timestamp=_now_iso())

	sender = settings.smtp_sender or settings.smtp_login
	message = EmailMessage()
	message["From"] = sender
	message["To"] = to
	message["Subject"] = subject
	message["Message-ID"] = make_msgid(domain=sender.split("@")[-1] if "@" in sender else None)
	message.set_content("This report requires an HTML-capable mail client.")
	message.add_alternative(html, subtype="html")

	try:
		with smtplib.SMTP(settings.smtp_server, settings.smtp_port, timeout=SMTP_TIMEOUT) as smtp:
			smtp.starttls()
			smtp.login(settings.smtp_login, settings.smtp_password)
			smtp.send_message(message)
	except (smtplib.SMTPException, OSError) as err:
		logger.error("email_send_failed", extra={"email": mask_email(to), "error": str(err)})
		return MailResult(success=False, error=str(err), timestamp=_now_iso())

	logger.info("email_sent", extra={"email": mask_email(to)})
	return MailResult(success=True, messageId=message["Message-ID"], timestamp=_now_iso())
