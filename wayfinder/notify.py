"""Best-effort notification sinks for session milestones."""

from typing import Optional

import requests

from .models import NavigationEvent


class WebhookNotifier:
    """POSTs navigation events as JSON to a webhook URL"""

    def __init__(self, url: str, timeout: float = 5.0, source: str = "wayfinder"):
        self.url = url
        self.timeout = timeout
        self.source = source
        self.last_error: Optional[str] = None

    def notify(self, event: NavigationEvent) -> bool:
        """Send one event; returns False (and remembers why) instead of raising"""
        payload = {"source": self.source, **event.to_dict()}
        try:
            response = requests.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            self.last_error = str(e)
            print(f"Webhook notification failed: {e}")
            return False
        self.last_error = None
        return True
