import os
import smtplib
import ssl
from email.message import EmailMessage


def mask_email(email: str) -> str:
    e = (email or '').strip()
    if not e or '@' not in e:
        return ''
    name, domain = e.split('@', 1)
    if len(name) <= 2:
        masked_name = name[:1] + '*'
    else:
        masked_name = name[:1] + ('*' * (len(name) - 2)) + name[-1:]
    return f'{masked_name}@{domain}'


def send_email(*, to_email: str, subject: str, body: str) -> tuple[bool, str | None]:
    """Send a plain-text email via SMTP.

    Env vars:
      - SMTP_HOST (required)
      - SMTP_PORT (default: 587)
      - SMTP_USERNAME (required)
      - SMTP_PASSWORD (required)
      - SMTP_FROM (default: SMTP_USERNAME)
      - SMTP_USE_TLS (default: true)

    Returns:
      (success, error_message)
    """

    host = (os.getenv('SMTP_HOST') or '').strip()
    user = (os.getenv('SMTP_USERNAME') or '').strip()
    password = (os.getenv('SMTP_PASSWORD') or '').strip()

    if not host or not user or not password:
        return False, 'Email is not configured (SMTP_HOST/SMTP_USERNAME/SMTP_PASSWORD)'

    port_raw = (os.getenv('SMTP_PORT') or '587').strip()
    try:
        port = int(port_raw)
    except ValueError:
        port = 587

    from_email = (os.getenv('SMTP_FROM') or user).strip()
    to = (to_email or '').strip()
    if not to:
        return False, 'Recipient email is missing'

    msg = EmailMessage()
    msg['From'] = from_email
    msg['To'] = to
    msg['Subject'] = subject
    msg.set_content(body)

    use_tls = (os.getenv('SMTP_USE_TLS') or 'true').strip().lower() in {'1', 'true', 'yes', 'on'}

    try:
        if port == 465:
            context = ssl.create_default_context()
            with smtplib.SMTP_SSL(host=host, port=port, timeout=20, context=context) as server:
                server.login(user, password)
                server.send_message(msg)
        elif use_tls:
            context = ssl.create_default_context()
            with smtplib.SMTP(host=host, port=port, timeout=20) as server:
                server.ehlo()
                server.starttls(context=context)
                server.ehlo()
                server.login(user, password)
                server.send_message(msg)
        else:
            with smtplib.SMTP(host=host, port=port, timeout=20) as server:
                server.ehlo()
                server.login(user, password)
                server.send_message(msg)
        return True, None
    except (smtplib.SMTPException, OSError) as e:
        return False, f'Failed to send email: {e}'
