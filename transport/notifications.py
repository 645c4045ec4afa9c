"""
Push notification gateway client (Expo push API).

Delivery is best effort: failures are logged and never raised to callers.
"""

import logging

import httpx

logger = logging.getLogger(__name__)

CHUNK_SIZE = 90


def build_message(token, title, body, data=None):
    """Shape a single push message for the Expo push API."""
    return {
        'to': token,
        'title': title,
        'body': body,
        'data': data or {},
    }


class PushNotifier:
    """
    Sends push messages in chunks to the Expo push endpoint.

    Args:
        url: Push gateway endpoint
        timeout: Request timeout in seconds
        enabled: When False, messages are dropped without a network call
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``)
    """

    def __init__(self, url, timeout=5.0, enabled=True, transport=None):
        self.url = url
        self.timeout = timeout
        self.enabled = enabled
        self.transport = transport

    def send(self, messages):
        """
        Post messages to the gateway, 90 per request.

        Returns:
            list: Parsed gateway responses for the chunks that were accepted
        """
        messages = [message for message in messages if message.get('to')]
        if not messages or not self.enabled:
            return []

        tickets = []
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                for start in range(0, len(messages), CHUNK_SIZE):
                    chunk = messages[start:start + CHUNK_SIZE]
                    response = client.post(
                        self.url,
                        json=chunk,
                        headers={'Accept': 'application/json'},
                    )
                    response.raise_for_status()
                    tickets.append(response.json())
        except (httpx.HTTPError, ValueError) as e:
            # Best effort: a lost notification never fails the business operation
            logger.warning(f"Push delivery failed after {len(tickets)} chunk(s): {e}")

        return tickets

    def notify(self, token, title, body, data=None):
        """Send one message if the recipient has a push token."""
        if not token:
            return []
        return self.send([build_message(token, title, body, data)])
