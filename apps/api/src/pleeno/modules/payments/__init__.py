"""
Payments Module

Payment plans, their installment schedules and payment recording.

Background Jobs (via APScheduler):
- mark_overdue_installments: Runs hourly, per agency timezone and cutoff
- send_due_soon_reminders: Runs hourly, at most one e-mail per installment per day
"""

from .jobs import register_payment_jobs

__all__ = ["register_payment_jobs"]
