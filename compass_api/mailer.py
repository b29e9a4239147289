from __future__ import annotations
import logging
from typing import Any, Dict, Optional

import httpx

from compass_core import config

log = logging.getLogger(__name__)


class MailerError(RuntimeError):
    pass


def build_payload(subject: str, html: str, cfg: Dict[str, Any], generate_pdf: bool) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "access_key": cfg.get("MAILER_ACCESS_KEY", ""),
        "subject": subject,
        "html": html,
    }
    if cfg.get("MAILER_FROM_NAME"):
        payload["from_name"] = cfg["MAILER_FROM_NAME"]
    if generate_pdf:
        # the mailer API renders the PDF attachment from the html
        payload["generate_pdf"] = "true"
    return payload


def send_report_email(subject: str, html: str, cfg: Dict[str, Any],
                      generate_pdf: Optional[bool] = None,
                      client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """POST the report to the mailer API. Raises MailerError on any failure."""
    url = cfg.get("MAILER_API_URL")
    if not url:
        raise MailerError("MAILER_API_URL is not configured")
    pdf = config.GENERATE_PDF if generate_pdf is None else generate_pdf
    payload = build_payload(subject, html, cfg, pdf)

    own = client is None
    cli = client or httpx.Client(timeout=config.MAILER_TIMEOUT_SEC)
    try:
        r = cli.post(url, json=payload)
        r.raise_for_status()
        body = r.json()
    except httpx.HTTPStatusError as exc:
        raise MailerError(f"mailer returned HTTP {exc.response.status_code}") from exc
    except httpx.RequestError as exc:
        raise MailerError(f"mailer unreachable: {exc}") from exc
    except ValueError as exc:
        raise MailerError(f"unexpected mailer response: {r.text[:200]}") from exc
    finally:
        if own:
            cli.close()

    if not isinstance(body, dict) or not body.get("success"):
        msg = body.get("message") if isinstance(body, dict) else None
        raise MailerError(f"failed to send email: {msg or 'unknown error'}")
    log.info("report email sent: %s", subject)
    return body
