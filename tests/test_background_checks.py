"""
Tests for the background check client and the candidate endpoint.

Provider requests go through ``httpx.MockTransport``.
"""

import base64
import json

import httpx
import pytest
from django.urls import reverse
from rest_framework import status

from transport.background_checks import BackgroundCheckClient
from transport.exceptions import BackgroundCheckFailed, BackgroundCheckUnavailable

API_URL = 'https://checkr.example.test/v1'
API_KEY = 'ck_test_key'


class CandidateHandler:
    """Records requests and answers like the candidates endpoint."""

    def __init__(self, status_code=201):
        self.status_code = status_code
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if self.status_code >= 400:
            return httpx.Response(self.status_code, json={'error': 'email is invalid'})
        body = json.loads(request.content)
        return httpx.Response(self.status_code, json={'id': 'cand_123', 'object': 'candidate', **body})


def make_client(handler, api_key=API_KEY):
    return BackgroundCheckClient(api_key, base_url=API_URL, transport=httpx.MockTransport(handler))


class TestBackgroundCheckClient:

    def test_create_candidate(self):
        handler = CandidateHandler()

        candidate = make_client(handler).create_candidate('Dana', 'Driver', 'dana@example.com')

        assert candidate['id'] == 'cand_123'
        assert len(handler.requests) == 1
        request = handler.requests[0]
        assert request.method == 'POST'
        assert str(request.url) == f'{API_URL}/candidates'
        assert json.loads(request.content) == {
            'given_name': 'Dana',
            'family_name': 'Driver',
            'email': 'dana@example.com',
        }

    def test_authenticates_with_api_key_as_username(self):
        handler = CandidateHandler()

        make_client(handler).create_candidate('Dana', 'Driver', 'dana@example.com')

        expected = base64.b64encode(f'{API_KEY}:'.encode('utf-8')).decode('ascii')
        assert handler.requests[0].headers['Authorization'] == f'Basic {expected}'

    def test_provider_rejection_raises(self):
        with pytest.raises(BackgroundCheckFailed) as excinfo:
            make_client(CandidateHandler(status_code=422)).create_candidate('Dana', 'Driver', 'not-an-email')

        assert '422' in str(excinfo.value.detail)

    def test_connection_error_raises(self):
        def unreachable(request):
            raise httpx.ConnectError('connection refused', request=request)

        with pytest.raises(BackgroundCheckFailed):
            make_client(unreachable).create_candidate('Dana', 'Driver', 'dana@example.com')

    def test_non_json_response_raises(self):
        def garbled(request):
            return httpx.Response(200, content=b'<html>maintenance</html>')

        with pytest.raises(BackgroundCheckFailed):
            make_client(garbled).create_candidate('Dana', 'Driver', 'dana@example.com')

    def test_missing_api_key_makes_no_request(self):
        handler = CandidateHandler()

        with pytest.raises(BackgroundCheckUnavailable):
            make_client(handler, api_key='').create_candidate('Dana', 'Driver', 'dana@example.com')

        assert handler.requests == []


@pytest.mark.django_db
class TestCreateCandidateEndpoint:

    def url(self):
        return reverse('checkr_create_candidate')

    def test_transporter_registers_with_account_email(self, transporter_client, background_checks):
        background_checks.create_candidate.return_value = {'id': 'cand_123', 'email': 'driver@example.com'}

        response = transporter_client.post(
            self.url(), {'first_name': ' Dana ', 'last_name': 'Driver'}, format='json'
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data == {'id': 'cand_123', 'email': 'driver@example.com'}
        background_checks.create_candidate.assert_called_once_with(
            first_name='Dana', last_name='Driver', email='driver@example.com'
        )

    def test_explicit_email(self, transporter_client, background_checks):
        background_checks.create_candidate.return_value = {'id': 'cand_456'}

        response = transporter_client.post(
            self.url(),
            {'first_name': 'Dana', 'last_name': 'Driver', 'email': 'dana.personal@example.com'},
            format='json',
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert background_checks.create_candidate.call_args.kwargs['email'] == 'dana.personal@example.com'

    def test_missing_names(self, transporter_client, background_checks):
        response = transporter_client.post(self.url(), {'first_name': ''}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'first_name' in response.data
        assert 'last_name' in response.data
        background_checks.create_candidate.assert_not_called()

    def test_provider_failure_maps_to_bad_gateway(self, transporter_client, background_checks):
        background_checks.create_candidate.side_effect = BackgroundCheckFailed(
            detail='Background check provider rejected the candidate (422).'
        )

        response = transporter_client.post(
            self.url(), {'first_name': 'Dana', 'last_name': 'Driver'}, format='json'
        )

        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        assert response.data['code'] == 'background_check_failed'

    def test_unconfigured_provider(self, transporter_client, background_checks):
        background_checks.create_candidate.side_effect = BackgroundCheckUnavailable()

        response = transporter_client.post(
            self.url(), {'first_name': 'Dana', 'last_name': 'Driver'}, format='json'
        )

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.data['code'] == 'background_check_unavailable'

    def test_owner_forbidden(self, owner_client, background_checks):
        response = owner_client.post(
            self.url(), {'first_name': 'Olive', 'last_name': 'Owner'}, format='json'
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        background_checks.create_candidate.assert_not_called()

    def test_requires_authentication(self, api_client):
        response = api_client.post(
            self.url(), {'first_name': 'Dana', 'last_name': 'Driver'}, format='json'
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
