# Overview: Outbound email through Flask-Mail with a rolling daily cap and an email log.

"""
Mail Service

send_email() never raises: rendering, attachment and SMTP failures are logged to the app logger and to
email_logs (status "failed") and reported as False. Callers treat email
as best-effort.

At most EMAIL_DAILY_LIMIT emails with status "sent" go out per rolling
24 hours; beyond that sends are refused and logged as failed.
"""
from __future__ import annotations

from datetime import timedelta
from typing import Callable

from flask import current_app, render_template
from flask_mail import Message

from ..extensions import db, mail
from ..models import EmailLog
from resellerpro.time_utils import utcnow
from .contract_service import ContractData, generate_contract_pdf


DAILY_LIMIT_ERROR = "Daily email limit reached"


def _format_rupees(paise: int) -> str:
    return f"₹{paise / 100:,.2f}"


def sent_in_last_24h() -> int:
    return db.session.query(EmailLog).filter(
        EmailLog.status == "sent",
        EmailLog.created_at >= utcnow() - timedelta(hours=24),
    ).count()


def _log(recipient: str, template: str, subject: str, status: str, error: str | None, metadata: dict | None) -> None:
    db.session.add(EmailLog(
        recipient=recipient,
        template=template,
        subject=subject,
        status=status,
        error=error,
        details=metadata or {},
    ))
    db.session.commit()


def send_email(
    *,
    to: str,
    subject: str,
    template: str,
    context: dict,
    attachments: Callable[[], list[tuple[str, str, bytes]]] | None = None,
    metadata: dict | None = None,
) -> bool:
    """
    Render templates/email/<template>.html and send it.

    attachments: a callable returning (filename, content_type, data)
    tuples. It runs inside the guarded block, so a failing PDF build is
    logged like any other send failure.
    """
    limit = current_app.config.get("EMAIL_DAILY_LIMIT", 300)
    if sent_in_last_24h() >= limit:
        current_app.logger.warning("Email to %s not sent: daily limit of %s reached", to, limit)
        _log(to, template, subject, "failed", DAILY_LIMIT_ERROR, metadata)
        return False

    try:
        html = render_template(
            f"email/{template}.html",
            app_url=current_app.config.get("APP_URL", "").rstrip("/"),
            **context,
        )
        msg = Message(subject=subject, recipients=[to], html=html)
        for filename, content_type, data in (attachments() if attachments else ()):
            msg.attach(filename, content_type, data)
        mail.send(msg)
    except Exception as exc:
        current_app.logger.exception("Failed to send %s email to %s", template, to)
        _log(to, template, subject, "failed", str(exc), metadata)
        return False

    _log(to, template, subject, "sent", None, metadata)
    return True


def send_subscription_confirmation(*, to: str, user_name: str, plan_name: str, amount_paise: int, start_date, end_date) -> bool:
    def contract_note():
        pdf = generate_contract_pdf(ContractData(
            user_name=user_name,
            plan_name=plan_name,
            amount_paise=amount_paise,
            start_date=start_date,
            end_date=end_date,
        ))
        return [("Contract_Note.pdf", "application/pdf", pdf)]

    return send_email(
        to=to,
        subject="Subscription Confirmed - Welcome to ResellerPro",
        template="subscription_confirmation",
        context={
            "user_name": user_name,
            "plan_name": plan_name,
            "amount": _format_rupees(amount_paise),
            "end_date": end_date.strftime("%d %b %Y") if end_date else "-",
        },
        attachments=contract_note,
        metadata={"plan": plan_name},
    )


def send_subscription_reminder(*, to: str, user_name: str, plan_name: str, days_left: int, end_date) -> bool:
    return send_email(
        to=to,
        subject=f"Action Required: Your Subscription Expires in {days_left} Days",
        template="subscription_reminder",
        context={
            "user_name": user_name,
            "plan_name": plan_name,
            "days_left": days_left,
            "end_date": end_date.strftime("%d %b %Y") if end_date else "-",
        },
        metadata={"days_left": days_left},
    )


def send_enquiry_alert(*, to: str, user_name: str, enquiries: list) -> bool:
    count = len(enquiries)
    return send_email(
        to=to,
        subject=f"You have {count} pending enquiries",
        template="enquiry_alert",
        context={"user_name": user_name, "count": count, "enquiries": enquiries},
        metadata={"count": count},
    )


def send_order_status(*, to: str, user_name: str, order_number: int, status: str, is_reminder: bool = False) -> bool:
    subject = (
        f"Reminder: Order #{order_number} is still {status}"
        if is_reminder
        else f"Order #{order_number} is now {status}"
    )
    return send_email(
        to=to,
        subject=subject,
        template="order_status",
        context={
            "user_name": user_name,
            "order_number": order_number,
            "status": status,
            "is_reminder": is_reminder,
        },
        metadata={"order_number": order_number, "status": status},
    )
