# Overview: Outbound email over SMTP.

from __future__ import annotations

import smtplib
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from flask import current_app


class MailDeliveryError(Exception):
    """SMTP is not configured or the server refused the message."""


def build_message(
    *,
    sender: str,
    recipients: list[str],
    subject: str,
    text: str,
    html: str | None = None,
    attachments: list[tuple[str, bytes, str]] | None = None,
) -> MIMEMultipart:
    msg = MIMEMultipart("mixed")
    msg["Subject"] = subject
    msg["From"] = sender
    msg["To"] = ", ".join(recipients)

    body = MIMEMultipart("alternative")
    body.attach(MIMEText(text, "plain", "utf-8"))
    if html:
        body.attach(MIMEText(html, "html", "utf-8"))
    msg.attach(body)

    for filename, content, mimetype in attachments or []:
        subtype = mimetype.split("/", 1)[1] if "/" in mimetype else "octet-stream"
        part = MIMEApplication(content, _subtype=subtype)
        part.add_header("Content-Disposition", "attachment", filename=filename)
        msg.attach(part)

    return msg


def send_email(
    recipients: list[str],
    subject: str,
    text: str,
    html: str | None = None,
    attachments: list[tuple[str, bytes, str]] | None = None,
) -> bool:
    """
    Send one message to all recipients.

    Returns True when sent, False when mail is disabled (MAIL_ENABLED off).
    Raises MailDeliveryError on any failure.
    """
    cfg = current_app.config
    if not cfg.get("MAIL_ENABLED", True):
        current_app.logger.info("Mail disabled, not sending %r to %s", subject, recipients)
        return False

    recipients = [r for r in recipients if r]
    if not recipients:
        raise MailDeliveryError("Aucun destinataire")

    host = cfg.get("SMTP_HOST")
    if not host:
        raise MailDeliveryError("SMTP non configuré")

    sender = cfg.get("MAIL_FROM") or cfg.get("SMTP_USER")
    msg = build_message(
        sender=sender,
        recipients=recipients,
        subject=subject,
        text=text,
        html=html,
        attachments=attachments,
    )

    try:
        with smtplib.SMTP(host, cfg.get("SMTP_PORT", 587), timeout=10) as s:
            if cfg.get("SMTP_USE_TLS", True):
                s.starttls()
            if cfg.get("SMTP_USER") and cfg.get("SMTP_PASS"):
                s.login(cfg["SMTP_USER"], cfg["SMTP_PASS"])
            s.sendmail(sender, recipients, msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        raise MailDeliveryError(f"Envoi impossible: {e}") from e

    current_app.logger.info("Mail %r sent to %s", subject, recipients)
    return True
