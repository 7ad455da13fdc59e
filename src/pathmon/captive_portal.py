from __future__ import annotations

import logging
import webbrowser
from typing import Optional

import requests

from pathmon.models import DEFAULT_CAPTIVE_PORTAL_URL, CaptivePortalStatus

SUCCESS_MARKER = "Success"

_NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}


class CaptivePortalProbe:
    """
    Classifies connectivity by fetching a well-known check page.

    A 200 response carrying the success marker means real internet access.
    Anything else that still answers over HTTP is treated as a portal
    intercepting the request; transport errors mean no internet.
    """

    def __init__(
        self,
        url: str = DEFAULT_CAPTIVE_PORTAL_URL,
        timeout: float = 5.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def check(self) -> CaptivePortalStatus:
        try:
            response = self.session.get(
                self.url,
                headers=_NO_CACHE_HEADERS,
                timeout=self.timeout,
                allow_redirects=True,
            )
        except requests.RequestException as exc:
            logging.warning("Captive portal check failed: %s", exc)
            return CaptivePortalStatus.no_internet(str(exc) or exc.__class__.__name__)

        try:
            body = response.text
        except (UnicodeDecodeError, LookupError):
            return CaptivePortalStatus.no_internet("No response")

        if response.status_code == 200 and SUCCESS_MARKER in body:
            return CaptivePortalStatus.connected()

        login_url = response.url or self.url
        logging.info("Captive portal detected (HTTP %s, login at %s)", response.status_code, login_url)
        return CaptivePortalStatus.captive_portal(login_url)

    def open_login_page(self, url: str) -> bool:
        return webbrowser.open(url)
