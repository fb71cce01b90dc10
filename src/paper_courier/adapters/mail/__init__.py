"""Mail adapters."""

from paper_courier.adapters.mail.smtp_mailer import SMTPMailer

__all__ = ["SMTPMailer"]
