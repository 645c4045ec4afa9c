"""
Background check provider client (Checkr candidates API).

Transporters are registered as candidates before a screening is ordered.
Unlike push delivery, provider failures are raised to the caller.
"""

import logging

import httpx

from .exceptions import BackgroundCheckFailed, BackgroundCheckUnavailable

logger = logging.getLogger(__name__)


class BackgroundCheckClient:
    """
    Creates candidates at the background check provider.

    Authenticates with HTTP basic auth, the API key as username and an empty
    password.

    Args:
        api_key: Provider API key; empty disables the client
        base_url: Provider API root
        timeout: Request timeout in seconds
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``)
    """

    def __init__(self, api_key, base_url='https://api.checkr.com/v1', timeout=10.0, transport=None):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.transport = transport

    def create_candidate(self, first_name, last_name, email):
        """
        Register a person with the provider.

        Returns:
            dict: Candidate record as returned by the provider

        Raises:
            BackgroundCheckUnavailable: If no API key is configured
            BackgroundCheckFailed: If the provider rejects the request or cannot be reached
        """
        if not self.api_key:
            raise BackgroundCheckUnavailable()

        payload = {
            'given_name': first_name,
            'family_name': last_name,
            'email': email,
        }

        try:
            with httpx.Client(
                base_url=self.base_url,
                auth=(self.api_key, ''),
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                response = client.post('/candidates', json=payload)
                response.raise_for_status()
                candidate = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(
                f"Candidate creation rejected for {email}: "
                f"{e.response.status_code} {e.response.text}"
            )
            raise BackgroundCheckFailed(
                detail=f'Background check provider rejected the candidate ({e.response.status_code}).'
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Candidate creation failed for {email}: {e}")
            raise BackgroundCheckFailed(detail=f'Background check provider unavailable: {e}')

        logger.info(f"Created background check candidate {candidate.get('id')} for {email}")
        return candidate
