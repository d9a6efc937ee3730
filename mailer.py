import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

from flask import current_app

from errors import MailConfigError, MailSendError

logger = logging.getLogger(__name__)

DEFAULT_INTRO = "Here are your latest test results:"
SUBMISSION_INTRO = "Thanks for taking the test. Here are your results:"

REPORT_ROW = """
                    <tr>
                        <td style="padding: 8px; border: 1px solid #e2e8f0;">{label}</td>
                        <td style="padding: 8px; border: 1px solid #e2e8f0;">{value}</td>
                    </tr>"""

REPORT_TEMPLATE = """
            <div style="font-family: Arial, sans-serif; line-height: 1.6; color: #0f172a;">
                <h2 style="margin: 0 0 12px;">AptiLab Test Report</h2>
                <p style="margin: 0 0 12px;">{intro}</p>
                <table style="border-collapse: collapse; width: 100%; max-width: 520px;">{rows}
                </table>
                <p style="margin-top: 16px;">Keep practicing to improve your score!</p>
            </div>
"""


def smtp_settings():
    cfg = current_app.config
    settings = {
        "host": cfg.get("SMTP_HOST"),
        "port": int(cfg.get("SMTP_PORT") or 587),
        "user": cfg.get("SMTP_USER"),
        "password": cfg.get("SMTP_PASS"),
        "sender": cfg.get("SMTP_FROM") or cfg.get("SMTP_USER"),
    }
    if not all(settings[k] for k in ("host", "user", "password", "sender")):
        raise MailConfigError(
            "Email service not configured",
            "Missing SMTP configuration in .env (SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASS, SMTP_FROM).",
        )
    return settings


def render_report(result, intro=DEFAULT_INTRO):
    """Returns (subject, html) for a TestResult."""
    topic = result.topic or "General"
    pct = result.percentage
    if pct is None:
        pct = round(result.score / result.total_questions * 100)
    date = result.created_at.strftime("%Y-%m-%d %H:%M:%S") if result.created_at else ""
    rows = [
        ("Topic", topic),
        ("Score", f"{result.score}/{result.total_questions}"),
        ("Percentage", f"{int(round(float(pct)))}%"),
        ("Time Spent", f"{result.time_spent or 0} seconds"),
        ("Date", date),
    ]
    html = REPORT_TEMPLATE.format(
        intro=intro,
        rows="".join(REPORT_ROW.format(label=label, value=escape(str(value))) for label, value in rows),
    )
    return f"AptiLab Test Report - {topic}", html


def send_mail(to, subject, html):
    settings = smtp_settings()
    message = MIMEMultipart("alternative")
    message["Subject"] = subject
    message["From"] = settings["sender"]
    message["To"] = to
    message.attach(MIMEText(html, "html"))

    smtp_cls = smtplib.SMTP_SSL if settings["port"] == 465 else smtplib.SMTP
    try:
        with smtp_cls(settings["host"], settings["port"], timeout=30) as server:
            if smtp_cls is smtplib.SMTP:
                server.starttls()
            server.login(settings["user"], settings["password"])
            server.sendmail(settings["sender"], [to], message.as_string())
    except (smtplib.SMTPException, OSError) as e:
        raise MailSendError("Failed to send report email", str(e))
    logger.info(f"Report email sent to {to}")


def send_report(result, intro=DEFAULT_INTRO):
    subject, html = render_report(result, intro)
    send_mail(result.user_email, subject, html)
