import base64
import os
from typing import Any
from urllib import request
from urllib import error as urlerror
from urllib.parse import urlencode


def mask_phone(phone: str) -> str:
    digits = ''.join(ch for ch in (phone or '') if ch.isdigit())
    if len(digits) <= 4:
        return '*' * len(digits)
    return '*' * (len(digits) - 4) + digits[-4:]


def format_phone_e164(raw_phone: str) -> str:
    """Best-effort E.164 formatting for SMS providers.

    Phones are stored digits-only (9-15 digits) and usually already carry the
    country code (e.g. 995555123456).

    Env vars:
      - SMS_COUNTRY_CODE (default: 995), used for national numbers with a leading 0
    """

    phone = (raw_phone or '').strip()
    if not phone:
        return phone

    # Remove common separators.
    phone = phone.replace(' ', '').replace('-', '').replace('(', '').replace(')', '')

    if phone.startswith('+'):
        return phone

    digits = ''.join(ch for ch in phone if ch.isdigit())
    cc = (os.getenv('SMS_COUNTRY_CODE') or '995').strip().lstrip('+')

    if cc and digits.startswith('0'):
        return f'+{cc}{digits[1:]}'

    return f'+{digits}'


def _do_form_request(
    *,
    url: str,
    method: str = 'POST',
    headers: dict[str, str] | None = None,
    form: dict[str, Any] | None = None,
) -> tuple[bool, str, str | None]:
    url = (url or '').strip()
    if not url:
        return False, '', 'URL is empty'

    hdrs = dict(headers or {})
    hdrs.setdefault('Accept', 'application/json,text/plain,*/*')
    hdrs.setdefault('Content-Type', 'application/x-www-form-urlencoded')

    data_bytes: bytes | None
    if form is None:
        data_bytes = None
    else:
        encoded = urlencode({k: '' if v is None else str(v) for k, v in form.items()})
        data_bytes = encoded.encode('utf-8')

    try:
        req = request.Request(url, data=data_bytes, method=(method or 'POST').strip().upper())
        for k, v in hdrs.items():
            req.add_header(k, v)

        with request.urlopen(req, timeout=15) as resp:
            status = getattr(resp, 'status', 0) or 0
            text = (resp.read() or b'').decode('utf-8', errors='replace')

            if 200 <= int(status) < 300:
                return True, text, None

            snippet = (text or '').strip().replace('\r', ' ').replace('\n', ' ')
            if len(snippet) > 300:
                snippet = snippet[:300] + '…'
            detail = f'HTTP {status}'
            if snippet:
                detail = f'{detail}: {snippet}'
            return False, text, detail
    except urlerror.HTTPError as e:
        body_text = (e.read() or b'').decode('utf-8', errors='replace')

        snippet = (body_text or '').strip().replace('\r', ' ').replace('\n', ' ')
        if len(snippet) > 300:
            snippet = snippet[:300] + '…'

        detail = f'HTTP Error {e.code}: {e.reason}'.strip()
        if snippet:
            detail = f'{detail} | {snippet}'
        return False, body_text, detail
    except (urlerror.URLError, OSError) as e:
        return False, '', str(e)


def _twilio_basic_auth_header(*, account_sid: str, auth_token: str) -> str:
    token = f'{account_sid}:{auth_token}'.encode('utf-8')
    return 'Basic ' + base64.b64encode(token).decode('ascii')


def send_sms(*, phone: str, message: str) -> tuple[bool, str | None]:
    """Send a text message through Twilio's Messages API.

    Env vars:
      - TWILIO_ACCOUNT_SID (required)
      - TWILIO_AUTH_TOKEN (required)
      - TWILIO_PHONE_NUMBER (required, sender)

    Returns:
      (success, error_message)
    """

    account_sid = (os.getenv('TWILIO_ACCOUNT_SID') or '').strip()
    auth_token = (os.getenv('TWILIO_AUTH_TOKEN') or '').strip()
    sender = (os.getenv('TWILIO_PHONE_NUMBER') or '').strip()
    if not account_sid or not auth_token or not sender:
        return False, 'SMS is not configured (TWILIO_ACCOUNT_SID/TWILIO_AUTH_TOKEN/TWILIO_PHONE_NUMBER)'

    to = format_phone_e164(phone)
    if not to:
        return False, 'Phone number is empty'

    url = f'https://api.twilio.com/2010-04-01/Accounts/{account_sid}/Messages.json'
    headers = {
        'Authorization': _twilio_basic_auth_header(account_sid=account_sid, auth_token=auth_token),
    }
    form = {
        'To': to,
        'From': sender,
        'Body': message,
    }

    ok, _text, err = _do_form_request(url=url, method='POST', headers=headers, form=form)
    if not ok:
        return False, f'SMS send failed: {err or "Unknown error"}'
    return True, None
