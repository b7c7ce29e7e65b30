"""
Tests for the registry API client.
"""

import base64
import json
from unittest.mock import MagicMock

import pytest
import requests

from imagesync.domain.context import Credentials, Deadline, ExecutionContext, TLSVerify
from imagesync.domain.reference import parse_docker_reference
from imagesync.exit_codes import SyncTimeoutError
from imagesync.infra.registry_client import (
    RegistryClient,
    TagListError,
    UnauthorizedError,
    load_auth_file,
    parse_challenge,
)

BEARER_CHALLENGE = (
    'Bearer realm="https://auth.example.com/token",'
    'service="registry.example.com",scope="repository:app:pull"'
)


def response(status_code=200, body=None, headers=None, links=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.headers = headers or {}
    resp.links = links or {}
    resp.json.return_value = body if body is not None else {}
    return resp


def client_with(*responses):
    session = MagicMock()
    session.get.side_effect = list(responses)
    return RegistryClient(session=session, page_size=50), session


class TestParseChallenge:
    """Tests for WWW-Authenticate parsing."""

    def test_bearer(self):
        scheme, params = parse_challenge(BEARER_CHALLENGE)

        assert scheme == 'bearer'
        assert params == {
            'realm': 'https://auth.example.com/token',
            'service': 'registry.example.com',
            'scope': 'repository:app:pull',
        }

    def test_basic(self):
        assert parse_challenge('Basic realm="Registry"') == ('basic', {'realm': 'Registry'})


class TestListTags:
    """Tests for RegistryClient.list_tags."""

    def test_anonymous_listing(self):
        client, session = client_with(response(body={'name': 'org/app', 'tags': ['v1', 'v2']}))

        tags = client.list_tags(parse_docker_reference("quay.io/org/app"), ExecutionContext())

        assert tags == ['v1', 'v2']
        args, kwargs = session.get.call_args
        assert args[0] == "https://quay.io/v2/org/app/tags/list"
        assert kwargs['params'] == {'n': 50}
        assert kwargs['timeout'] == 30.0

    def test_docker_hub_endpoint(self):
        client, session = client_with(response(body={'tags': ['latest']}))

        client.list_tags(parse_docker_reference("busybox"), ExecutionContext())

        args, _ = session.get.call_args
        assert args[0] == "https://registry-1.docker.io/v2/library/busybox/tags/list"

    def test_null_tags(self):
        client, _ = client_with(response(body={'tags': None}))

        assert client.list_tags(parse_docker_reference("quay.io/app"), ExecutionContext()) == []

    def test_pagination(self):
        client, session = client_with(
            response(body={'tags': ['a', 'b']},
                     links={'next': {'url': '/v2/app/tags/list?n=2&last=b'}}),
            response(body={'tags': ['c']}),
        )

        tags = client.list_tags(parse_docker_reference("quay.io/app"), ExecutionContext())

        assert tags == ['a', 'b', 'c']
        second = session.get.call_args_list[1]
        assert second.args[0] == "https://quay.io/v2/app/tags/list?n=2&last=b"
        assert second.kwargs['params'] is None

    def test_bearer_challenge_with_credentials(self):
        client, session = client_with(
            response(401, headers={'WWW-Authenticate': BEARER_CHALLENGE}),
            response(body={'token': 'abc'}),
            response(body={'tags': ['v1']}),
        )
        context = ExecutionContext(credentials=Credentials('john', 'secret'))

        tags = client.list_tags(parse_docker_reference("registry.example.com/app"), context)

        assert tags == ['v1']
        token_call = session.get.call_args_list[1]
        assert token_call.args[0] == "https://auth.example.com/token"
        assert token_call.kwargs['params'] == {
            'scope': 'repository:app:pull',
            'service': 'registry.example.com',
        }
        assert token_call.kwargs['auth'] == ('john', 'secret')
        retry = session.get.call_args_list[2]
        assert retry.kwargs['headers'] == {'Authorization': 'Bearer abc'}

    def test_bearer_challenge_anonymous(self):
        client, session = client_with(
            response(401, headers={'WWW-Authenticate': BEARER_CHALLENGE}),
            response(body={'access_token': 'anon'}),
            response(body={'tags': ['v1']}),
        )

        client.list_tags(parse_docker_reference("registry.example.com/app"), ExecutionContext())

        assert session.get.call_args_list[1].kwargs['auth'] is None

    def test_basic_challenge(self):
        client, session = client_with(
            response(401, headers={'WWW-Authenticate': 'Basic realm="Registry"'}),
            response(body={'tags': ['v1']}),
        )
        context = ExecutionContext(credentials=Credentials('john', 'secret'))

        client.list_tags(parse_docker_reference("registry.example.com/app"), context)

        expected = base64.b64encode(b'john:secret').decode('ascii')
        assert session.get.call_args_list[1].kwargs['headers'] == {'Authorization': f'Basic {expected}'}

    def test_basic_challenge_without_credentials(self):
        client, _ = client_with(response(401, headers={'WWW-Authenticate': 'Basic realm="Registry"'}))

        with pytest.raises(UnauthorizedError):
            client.list_tags(parse_docker_reference("registry.example.com/app"), ExecutionContext())

    def test_refused_token(self):
        client, _ = client_with(
            response(401, headers={'WWW-Authenticate': BEARER_CHALLENGE}),
            response(401),
        )

        with pytest.raises(UnauthorizedError):
            client.list_tags(parse_docker_reference("registry.example.com/app"), ExecutionContext())

    def test_unauthorized_after_retry(self):
        client, _ = client_with(
            response(401, headers={'WWW-Authenticate': BEARER_CHALLENGE}),
            response(body={'token': 'abc'}),
            response(403),
        )

        with pytest.raises(UnauthorizedError):
            client.list_tags(parse_docker_reference("registry.example.com/app"), ExecutionContext())

    def test_registry_token_is_sent(self):
        client, session = client_with(response(body={'tags': []}))

        client.list_tags(parse_docker_reference("quay.io/app"), ExecutionContext(registry_token='tok'))

        assert session.get.call_args.kwargs['headers'] == {'Authorization': 'Bearer tok'}

    def test_not_found(self):
        client, _ = client_with(response(404))

        with pytest.raises(TagListError, match='not found'):
            client.list_tags(parse_docker_reference("quay.io/app"), ExecutionContext())

    def test_server_error(self):
        client, _ = client_with(response(500))

        with pytest.raises(TagListError):
            client.list_tags(parse_docker_reference("quay.io/app"), ExecutionContext())

    def test_connection_error(self):
        client, _ = client_with(requests.ConnectionError("refused"))

        with pytest.raises(TagListError):
            client.list_tags(parse_docker_reference("quay.io/app"), ExecutionContext())

    def test_invalid_json(self):
        resp = response()
        resp.json.side_effect = ValueError("no json")
        client, _ = client_with(resp)

        with pytest.raises(TagListError):
            client.list_tags(parse_docker_reference("quay.io/app"), ExecutionContext())


class TestClientSession:
    """Tests for the requests session set up by RegistryClient."""

    def test_user_agent_replaces_requests_default(self):
        client = RegistryClient(user_agent="imagesync-test")

        assert client.session.headers['User-Agent'] == "imagesync-test"

    def test_user_agent_on_given_session(self):
        session = requests.Session()

        RegistryClient(session=session)

        assert session.headers['User-Agent'] == "imagesync"


class TestListTagsDeadline:
    """Tests for the run deadline while listing tags."""

    def _slow_session(self, now, cost, responses):
        session = MagicMock()
        pending = list(responses)

        def get(*args, **kwargs):
            now[0] += cost
            return pending.pop(0)

        session.get.side_effect = get
        return session

    def _pages(self, count):
        return [
            response(body={'tags': [f"v{i}"]},
                     links={'next': {'url': f"/v2/app/tags/list?last=v{i}"}})
            for i in range(count)
        ]

    def test_deadline_bounds_each_page(self):
        now = [0.0]
        session = self._slow_session(now, 8, self._pages(5))
        client = RegistryClient(session=session)

        with pytest.raises(SyncTimeoutError):
            client.list_tags(parse_docker_reference("quay.io/app"), ExecutionContext(),
                             deadline=Deadline(10, clock=lambda: now[0]))

        assert session.get.call_count == 2
        timeouts = [c.kwargs['timeout'] for c in session.get.call_args_list]
        assert timeouts == [10, 2]

    def test_deadline_checked_before_token_request(self):
        now = [0.0]
        session = self._slow_session(now, 8, [
            response(401, headers={'WWW-Authenticate': BEARER_CHALLENGE}),
            response(body={'token': 'abc'}),
            response(body={'tags': ['v1']}),
        ])
        client = RegistryClient(session=session)

        with pytest.raises(SyncTimeoutError):
            client.list_tags(parse_docker_reference("registry.example.com/app"), ExecutionContext(),
                             deadline=Deadline(10, clock=lambda: now[0]))

        assert session.get.call_count == 2
        assert session.get.call_args_list[1].args[0] == "https://auth.example.com/token"
        assert session.get.call_args_list[1].kwargs['timeout'] == 2

    def test_expired_deadline_stops_scheme_check(self):
        now = [0.0]
        deadline = Deadline(1, clock=lambda: now[0])
        now[0] = 5
        session = MagicMock()
        client = RegistryClient(session=session)

        with pytest.raises(SyncTimeoutError):
            client.list_tags(parse_docker_reference("localhost:5000/app"),
                             ExecutionContext(tls_verify=TLSVerify.SKIP), deadline=deadline)

        session.get.assert_not_called()

    def test_unbounded_deadline_uses_client_timeout(self):
        client, session = client_with(*self._pages(2), response(body={'tags': ['last']}))

        tags = client.list_tags(parse_docker_reference("quay.io/app"), ExecutionContext(),
                                deadline=Deadline())

        assert tags == ['v0', 'v1', 'last']
        assert all(c.kwargs['timeout'] == 30.0 for c in session.get.call_args_list)


class TestTLSSettings:
    """Tests for TLS options derived from the execution context."""

    def test_skip_verification(self):
        client, session = client_with(response(), response(body={'tags': ['v1']}))

        client.list_tags(parse_docker_reference("quay.io/app"), ExecutionContext(tls_verify=TLSVerify.SKIP))

        listing = session.get.call_args_list[1]
        assert listing.args[0].startswith("https://")
        assert listing.kwargs['verify'] is False

    def test_http_fallback_when_skipping(self):
        client, session = client_with(
            requests.exceptions.SSLError("wrong version number"),
            response(body={'tags': ['v1']}),
        )

        client.list_tags(parse_docker_reference("localhost:5000/app"), ExecutionContext(tls_verify=TLSVerify.SKIP))

        assert session.get.call_args_list[1].args[0] == "http://localhost:5000/v2/app/tags/list"

    def test_cert_dir(self, tmp_path):
        for name in ['ca.crt', 'client.cert', 'client.key']:
            (tmp_path / name).write_text('')
        client, session = client_with(response(body={'tags': []}))

        client.list_tags(parse_docker_reference("quay.io/app"), ExecutionContext(cert_dir=str(tmp_path)))

        kwargs = session.get.call_args.kwargs
        assert kwargs['verify'] == str(tmp_path / 'ca.crt')
        assert kwargs['cert'] == (str(tmp_path / 'client.cert'), str(tmp_path / 'client.key'))


class TestAuthFile:
    """Tests for auth file lookup."""

    def _write(self, tmp_path, auths):
        path = tmp_path / 'auth.json'
        path.write_text(json.dumps({'auths': auths}))
        return str(path)

    def _auth(self, value):
        return {'auth': base64.b64encode(value.encode()).decode()}

    def test_registry_entry(self, tmp_path):
        path = self._write(tmp_path, {'quay.io': self._auth('john:secret')})

        assert load_auth_file(path, 'quay.io') == Credentials('john', 'secret')

    def test_docker_hub_legacy_key(self, tmp_path):
        path = self._write(tmp_path, {'https://index.docker.io/v1/': self._auth('jane:pw')})

        assert load_auth_file(path, 'docker.io') == Credentials('jane', 'pw')

    def test_missing_entry(self, tmp_path):
        path = self._write(tmp_path, {'quay.io': self._auth('john:secret')})

        assert load_auth_file(path, 'ghcr.io') is None

    def test_unreadable_file(self, tmp_path):
        assert load_auth_file(str(tmp_path / 'missing.json'), 'quay.io') is None

    def test_auth_file_used_for_challenge(self, tmp_path):
        path = self._write(tmp_path, {'registry.example.com': self._auth('john:secret')})
        client, session = client_with(
            response(401, headers={'WWW-Authenticate': BEARER_CHALLENGE}),
            response(body={'token': 'abc'}),
            response(body={'tags': []}),
        )

        client.list_tags(parse_docker_reference("registry.example.com/app"), ExecutionContext(auth_file=path))

        assert session.get.call_args_list[1].kwargs['auth'] == ('john', 'secret')

    def test_no_creds_ignores_auth_file(self, tmp_path):
        path = self._write(tmp_path, {'registry.example.com': self._auth('john:secret')})
        client, session = client_with(
            response(401, headers={'WWW-Authenticate': BEARER_CHALLENGE}),
            response(body={'token': 'abc'}),
            response(body={'tags': []}),
        )

        client.list_tags(
            parse_docker_reference("registry.example.com/app"),
            ExecutionContext(auth_file=path, no_creds=True),
        )

        assert session.get.call_args_list[1].kwargs['auth'] is None
