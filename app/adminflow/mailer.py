from __future__ import annotations

import base64
import http.client
import logging
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Mapping, Sequence
from typing import Any

from flask import current_app, has_app_context

logger = logging.getLogger(__name__)

DEMO_MARKER = "placeholder"


def _config() -> Mapping[str, Any]:
    return current_app.config if has_app_context() else {}


def send_email(
    to: str | Sequence[str],
    subject: str,
    text: str,
    html: str | None = None,
    *,
    from_addr: str | None = None,
    config: Mapping[str, Any] | None = None,
) -> bool:
    """
    Send through the Mailgun HTTP API. Fire-and-forget: never raises, returns False on failure.
    A MAILGUN_API_KEY starting with "placeholder" logs the message instead of sending it.
    """
    cfg = config if config is not None else _config()
    recipients = [to] if isinstance(to, str) else list(to)
    sender = from_addr or cfg.get("DEFAULT_FROM_EMAIL") or "noreply@example.com"
    api_key = (cfg.get("MAILGUN_API_KEY") or "").strip()

    if api_key.startswith(DEMO_MARKER):
        logger.info(
            "[DEMO] Email not sent. from=%s to=%s subject=%s\n%s",
            sender,
            ", ".join(recipients),
            subject,
            text,
        )
        return True

    domain = (cfg.get("MAILGUN_DOMAIN") or "").strip()
    if not api_key or not domain:
        logger.error("Email to %s not sent: MAILGUN_API_KEY and MAILGUN_DOMAIN are required.", ", ".join(recipients))
        return False

    base_url = (cfg.get("MAILGUN_API_URL") or "https://api.mailgun.net/v3").rstrip("/")
    timeout = float(cfg.get("MAILGUN_TIMEOUT_SECONDS") or 15)
    form = {"from": sender, "to": ",".join(recipients), "subject": subject, "text": text}
    if html:
        form["html"] = html
    token = base64.b64encode(f"api:{api_key}".encode("utf-8")).decode("ascii")
    try:
        req = urllib.request.Request(
            f"{base_url}/{urllib.parse.quote(domain)}/messages",
            data=urllib.parse.urlencode(form).encode("utf-8"),
            method="POST",
        )
        req.add_header("Authorization", f"Basic {token}")
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            resp.read()
    except (urllib.error.URLError, http.client.HTTPException, ValueError, TimeoutError, OSError) as e:
        logger.error("Error sending email to %s: %s", ", ".join(recipients), e)
        return False
    logger.info("Email sent to %s (subject=%s)", ", ".join(recipients), subject)
    return True
