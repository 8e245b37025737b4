"""Mailer domain - unsubscribe tokens, SMTP providers, single and batch sends"""
