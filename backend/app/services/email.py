"""Send emails (verification code, welcome) via SMTP."""

import html
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from urllib.parse import urlencode

from app.core.config import settings

logger = logging.getLogger(__name__)

# Avoid blocking the request forever if SMTP is slow or unreachable
SMTP_TIMEOUT_SECONDS = 15


def _logo_url() -> str:
    if settings.EMAIL_LOGO_URL:
        return settings.EMAIL_LOGO_URL
    base = settings.FRONTEND_BASE_URL.rstrip("/")
    return f"{base}/logo.png"


def smtp_configured() -> bool:
    return bool(settings.SMTP_HOST and settings.SMTP_USER)


def verification_url(email: str, code: str) -> str:
    base = settings.FRONTEND_BASE_URL.rstrip("/")
    return f"{base}/verify-email?{urlencode({'token': code, 'email': email})}"


def dashboard_url() -> str:
    return f"{settings.FRONTEND_BASE_URL.rstrip('/')}/dashboard"


def display_name(email: str, full_name: str = "") -> str:
    """Full name if known, else the local part of the address."""
    name = (full_name or "").strip()
    if name:
        return name
    return (email or "").split("@")[0] or "there"


def _send(to_email: str, subject: str, text: str, html_body: str) -> bool:
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{settings.SMTP_FROM_NAME} <{settings.SMTP_FROM_EMAIL}>"
    msg["To"] = to_email
    msg.attach(MIMEText(text, "plain"))
    msg.attach(MIMEText(html_body, "html"))

    try:
        with smtplib.SMTP(
            settings.SMTP_HOST, settings.SMTP_PORT, timeout=SMTP_TIMEOUT_SECONDS
        ) as server:
            server.starttls()
            server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.sendmail(settings.SMTP_FROM_EMAIL, [to_email], msg.as_string())
        logger.info("Email '%s' sent to %s", subject, to_email)
        return True
    except smtplib.SMTPAuthenticationError as e:
        logger.exception("SMTP login failed for %s: %s", to_email, e)
        return False
    except (OSError, TimeoutError) as e:
        logger.exception("SMTP connection error (timeout or network) for %s: %s", to_email, e)
        return False
    except smtplib.SMTPException as e:
        logger.exception("Failed to send email to %s: %s", to_email, e)
        return False


def send_verification_code_email(
    to_email: str,
    code: str,
    expire_minutes: int = 10,
    name: str = "",
    link: str = "",
    is_resend: bool = False,
) -> bool:
    """
    Send the numeric verification code, plus a link that verifies in one click.
    Returns True if sent, False if SMTP not configured or send failed.
    """
    if not smtp_configured():
        logger.warning("SMTP not configured (SMTP_HOST/SMTP_USER). Skipping send.")
        return False

    logo_url = _logo_url()
    link = link or verification_url(to_email, code)
    greeting = html.escape(display_name(to_email, name))
    intro = (
        "Here is your new verification code:"
        if is_resend
        else "Thank you for signing up! Here is your verification code:"
    )
    subject = "Verify your email address"
    html_body = f"""
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: sans-serif; max-width: 560px; margin: 0 auto; padding: 24px;">
  <p style="margin-bottom: 24px;">
    <img src="{logo_url}" alt="Logo" width="140" height="48" style="display: block;" />
  </p>
  <p style="font-size: 16px; color: #1a1a1a; line-height: 1.5;">
    Hello {greeting},
  </p>
  <p style="font-size: 16px; color: #1a1a1a; line-height: 1.5;">
    {intro}
  </p>
  <p style="margin: 24px 0; font-size: 28px; font-weight: 600; letter-spacing: 0.2em; color: #2563eb;">
    {code}
  </p>
  <p style="font-size: 14px; color: #737373;">
    Enter this code on the verification screen. It expires in {expire_minutes} minutes.
  </p>
  <p style="margin: 24px 0;">
    <a href="{html.escape(link)}" style="display: inline-block; padding: 12px 24px; background-color: #2563eb; color: white; text-decoration: none; border-radius: 6px; font-weight: 500;">
      Verify Email Address
    </a>
  </p>
  <p style="font-size: 14px; color: #737373;">
    Never share this code with anyone. If you didn't request this, you can ignore this email.
  </p>
</body>
</html>
"""
    text = (
        f"Hello {display_name(to_email, name)},\n\n"
        f"{intro} {code}\n\n"
        f"Enter it on the verification screen. The code expires in {expire_minutes} minutes.\n\n"
        f"Or verify directly: {link}\n\n"
        "Never share this code with anyone. If you didn't request this, you can ignore this email.\n"
    )
    return _send(to_email, subject, text, html_body)


def send_welcome_email(to_email: str, name: str = "", link: str = "") -> bool:
    """
    Send the welcome email after a successful verification.
    Returns True if sent, False if SMTP not configured or send failed.
    """
    if not smtp_configured():
        logger.warning("SMTP not configured (SMTP_HOST/SMTP_USER). Skipping welcome email.")
        return False

    logo_url = _logo_url()
    link = link or dashboard_url()
    greeting = html.escape(display_name(to_email, name))
    subject = "Your email has been verified"
    html_body = f"""
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: sans-serif; max-width: 560px; margin: 0 auto; padding: 24px;">
  <p style="margin-bottom: 24px;">
    <img src="{logo_url}" alt="Logo" width="140" height="48" style="display: block;" />
  </p>
  <p style="font-size: 16px; color: #1a1a1a; line-height: 1.5;">
    Hello {greeting},
  </p>
  <p style="font-size: 16px; color: #1a1a1a; line-height: 1.5; margin-top: 16px;">
    Your email has been verified and your account is now active.
  </p>
  <p style="margin: 24px 0;">
    <a href="{html.escape(link)}" style="display: inline-block; padding: 12px 24px; background-color: #2563eb; color: white; text-decoration: none; border-radius: 6px; font-weight: 500;">
      Go to your dashboard
    </a>
  </p>
</body>
</html>
"""
    text = (
        f"Hello {display_name(to_email, name)},\n\n"
        "Your email has been verified and your account is now active.\n\n"
        f"Go to your dashboard: {link}\n"
    )
    return _send(to_email, subject, text, html_body)
