import os


def email_config_from_env() -> dict:
    """Email provider settings; the provider factory decides which one is active."""

    return {
        "mailgun_api_key": os.getenv("MAILGUN_API_KEY", ""),
        "mailgun_domain": os.getenv("MAILGUN_DOMAIN", ""),
        "mailgun_from": os.getenv("MAILGUN_FROM", ""),
        "mailgun_api_base_url": os.getenv("MAILGUN_API_BASE_URL", "https://api.mailgun.net"),
        "sendgrid_api_key": os.getenv("SENDGRID_API_KEY", ""),
        "sendgrid_from": os.getenv("SENDGRID_FROM", ""),
        "smtp_url": os.getenv("SMTP_URL", ""),
        "smtp_host": os.getenv("SMTP_HOST", ""),
        "smtp_port": int(os.getenv("SMTP_PORT", "587")),
        "smtp_secure": os.getenv("SMTP_SECURE", "false") == "true",
        "smtp_require_tls": os.getenv("SMTP_REQUIRE_TLS", "false") == "true",
        "smtp_user": os.getenv("SMTP_USER", ""),
        "smtp_pass": os.getenv("SMTP_PASS", ""),
        "smtp_from": os.getenv("SMTP_FROM", "WAA-100 <no-reply@example.com>"),
        "timeout": float(os.getenv("EMAIL_TIMEOUT", "10")),
    }
