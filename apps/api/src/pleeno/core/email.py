"""
Email Service using Resend

Payment notifications sent to students by the installment jobs.
Without RESEND_API_KEY emails are logged instead of sent.
"""

import asyncio
import logging
from datetime import date
from decimal import Decimal
from html import escape

import resend

from pleeno.core.config import settings

logger = logging.getLogger(__name__)

resend.api_key = settings.resend_api_key

_BASE_STYLE = """
    body { font-family: system-ui, -apple-system, sans-serif; line-height: 1.6; color: #1f2937; }
    .container { max-width: 600px; margin: 0 auto; padding: 40px 20px; }
    .header { color: #0f3d5e; margin-bottom: 24px; }
    .amount { font-size: 20px; font-weight: 600; }
    .footer { margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px; }
"""


async def send_email(to_email: str, subject: str, html_content: str) -> bool:
    """
    Send an email using Resend.

    Returns:
        True if the email was sent (or logged in place of sending)
    """
    if not resend.api_key:
        logger.warning("RESEND_API_KEY not set - logging email instead of sending")
        logger.info(f"EMAIL TO: {to_email} | SUBJECT: {subject}")
        return True

    try:
        params: resend.Emails.SendParams = {
            "from": settings.email_from,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
        }
        # Resend's client is synchronous
        email = await asyncio.to_thread(resend.Emails.send, params)
        logger.info(f"Email sent to {to_email}, id: {email['id']}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False


def _render(title: str, body: str, agency_name: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head><style>{_BASE_STYLE}</style></head>
    <body>
        <div class="container">
            <h1 class="header">{title}</h1>
            {body}
            <div class="footer">
                <p>{escape(agency_name)}</p>
            </div>
        </div>
    </body>
    </html>
    """


async def send_payment_due_soon(
    to_email: str,
    student_name: str,
    agency_name: str,
    amount: Decimal,
    currency: str,
    due_date: date,
    program_name: str | None = None,
) -> bool:
    """Remind a student that an installment is due soon."""
    safe_student_name = escape(student_name)
    program_line = f"<p>Program: <strong>{escape(program_name)}</strong></p>" if program_name else ""

    body = f"""
        <p>Hello {safe_student_name},</p>
        <p>This is a reminder that your next payment is due on
        <strong>{due_date.strftime("%d %B %Y")}</strong>.</p>
        <p class="amount">{escape(currency)} {amount:,.2f}</p>
        {program_line}
        <p>If you have already paid, please ignore this message.</p>
    """
    return await send_email(
        to_email=to_email,
        subject=f"Payment reminder: {currency} {amount:,.2f} due {due_date.isoformat()}",
        html_content=_render("Upcoming Payment", body, agency_name),
    )


async def send_payment_overdue(
    to_email: str,
    student_name: str,
    agency_name: str,
    amount: Decimal,
    currency: str,
    due_date: date,
    program_name: str | None = None,
) -> bool:
    """Tell a student that an installment is now overdue."""
    safe_student_name = escape(student_name)
    program_line = f"<p>Program: <strong>{escape(program_name)}</strong></p>" if program_name else ""

    body = f"""
        <p>Hello {safe_student_name},</p>
        <p>Your payment due on <strong>{due_date.strftime("%d %B %Y")}</strong>
        has not been received and is now overdue.</p>
        <p class="amount">{escape(currency)} {amount:,.2f}</p>
        {program_line}
        <p>Please contact {escape(agency_name)} to arrange payment.</p>
    """
    return await send_email(
        to_email=to_email,
        subject=f"Payment overdue: {currency} {amount:,.2f}",
        html_content=_render("Payment Overdue", body, agency_name),
    )
