"""
Registry API client infrastructure for imagesync.

Provides tag listing over the Docker Registry HTTP API v2:
- Bearer token challenge handling (token service + basic credentials)
- Credentials from the execution context or a containers auth file
- TLS settings from the execution context (skip, CA bundle, client cert)
- ``Link`` header pagination
"""

import base64
import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urljoin

import requests

from ..domain.context import Credentials, Deadline, ExecutionContext
from ..domain.reference import DEFAULT_REGISTRY, ImageReference

logger = logging.getLogger(__name__)

DOCKER_HUB_ENDPOINT = "registry-1.docker.io"
DOCKER_HUB_AUTH_KEYS = ("docker.io", "index.docker.io", "https://index.docker.io/v1/")

_CHALLENGE_PARAM_RE = re.compile(r'(\w+)="([^"]*)"')


class RegistryError(Exception):
    """Base class for registry client failures."""


class UnauthorizedError(RegistryError):
    """The registry refused access to the requested resource."""


class TagListError(RegistryError):
    """Tag listing failed for a reason other than authorization."""


def parse_challenge(header: str) -> Tuple[str, Dict[str, str]]:
    """
    Parse a ``WWW-Authenticate`` header.

    Returns:
        Tuple of (scheme, params), scheme lower-cased
    """
    scheme, _, rest = header.strip().partition(' ')
    params = {k.lower(): v for k, v in _CHALLENGE_PARAM_RE.findall(rest)}
    return scheme.lower(), params


def load_auth_file(path: str, registry: str) -> Optional[Credentials]:
    """
    Look up credentials for ``registry`` in a containers/docker auth file.

    The file has the shape ``{"auths": {"host": {"auth": base64("user:pass")}}}``.
    """
    try:
        data = json.loads(Path(path).expanduser().read_text())
    except (OSError, ValueError) as e:
        logger.warning(f"Cannot read auth file {path}: {e}")
        return None

    auths = data.get('auths') or {}
    keys = DOCKER_HUB_AUTH_KEYS if registry == DEFAULT_REGISTRY else (registry,)
    for key in keys:
        entry = auths.get(key) or auths.get(f"https://{key}")
        if not entry or not entry.get('auth'):
            continue
        try:
            decoded = base64.b64decode(entry['auth']).decode('utf-8')
        except (ValueError, UnicodeDecodeError):
            logger.warning(f"Ignoring malformed auth entry for {key} in {path}")
            continue
        username, _, password = decoded.partition(':')
        return Credentials(username=username, password=password)
    return None


class RegistryClient:
    """
    Docker Registry v2 client for tag listing.

    Example:
        client = RegistryClient()
        ref = parse_docker_reference("quay.io/org/app")
        tags = client.list_tags(ref, ExecutionContext())
    """

    def __init__(
        self,
        timeout: float = 30.0,
        page_size: int = 1000,
        user_agent: str = "imagesync",
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize RegistryClient.

        Args:
            timeout: Per-request timeout in seconds
            page_size: Number of tags requested per page
            user_agent: User-Agent header value
            session: requests session (created if None)
        """
        self.timeout = timeout
        self.page_size = page_size
        self.session = session or requests.Session()
        self.session.headers['User-Agent'] = user_agent

    def list_tags(
        self,
        ref: ImageReference,
        context: ExecutionContext,
        deadline: Optional[Deadline] = None,
    ) -> List[str]:
        """
        List all tags of the repository ``ref`` points to.

        Args:
            ref: Docker reference (tag and digest are ignored)
            context: Credentials and TLS settings
            deadline: Overall run deadline, checked before every request

        Returns:
            Tags in registry order

        Raises:
            UnauthorizedError: If the registry refuses tag listing
            TagListError: For any other failure
            SyncTimeoutError: If the deadline expires while listing
        """
        tls = self._tls_options(context)
        path = f"/v2/{ref.repository}/tags/list"
        scheme = self._scheme(ref, context, tls, deadline)
        url = f"{scheme}://{self._endpoint(ref.registry)}{path}"
        params: Optional[Dict[str, Any]] = {'n': self.page_size}
        headers = self._initial_headers(context)

        tags: List[str] = []
        while url:
            response = self._get(url, params, headers, tls, deadline)
            if response.status_code == 401:
                headers = self._authenticate(response, ref, context, tls, deadline)
                response = self._get(url, params, headers, tls, deadline)

            if response.status_code in (401, 403):
                raise UnauthorizedError(
                    f"{ref.name}: registry returned {response.status_code} for tag listing"
                )
            if response.status_code == 404:
                raise TagListError(f"{ref.name}: repository not found")
            if response.status_code != 200:
                raise TagListError(
                    f"{ref.name}: registry returned {response.status_code} for tag listing"
                )

            try:
                data = response.json()
            except ValueError as e:
                raise TagListError(f"{ref.name}: invalid tag list response: {e}") from e
            tags.extend(data.get('tags') or [])

            next_link = response.links.get('next', {}).get('url')
            url = urljoin(url, next_link) if next_link else None
            params = None

        logger.debug(f"{ref.name}: {len(tags)} tag(s) listed")
        return tags

    def _endpoint(self, registry: str) -> str:
        if registry == DEFAULT_REGISTRY:
            return DOCKER_HUB_ENDPOINT
        return registry

    def _request_timeout(self, deadline: Optional[Deadline]) -> float:
        """Per-request timeout, capped by what is left of ``deadline``."""
        if deadline is None:
            return self.timeout
        return deadline.timeout(self.timeout)

    def _scheme(self, ref, context, tls, deadline) -> str:
        """Pick https, falling back to http only when TLS verification is skipped."""
        if not context.tls_verify.skip:
            return 'https'
        try:
            self.session.get(
                f"https://{self._endpoint(ref.registry)}/v2/",
                timeout=self._request_timeout(deadline), **tls
            )
            return 'https'
        except (requests.exceptions.SSLError, requests.exceptions.ConnectionError):
            logger.debug(f"{ref.registry}: https unavailable, falling back to http")
            return 'http'

    def _tls_options(self, context: ExecutionContext) -> Dict[str, Any]:
        if context.tls_verify.skip:
            return {'verify': False}
        options: Dict[str, Any] = {}
        if context.cert_dir:
            cert_dir = Path(context.cert_dir).expanduser()
            ca_files = sorted(cert_dir.glob('*.crt'))
            if ca_files:
                options['verify'] = str(ca_files[0])
            for cert in sorted(cert_dir.glob('*.cert')):
                key = cert.with_suffix('.key')
                if key.exists():
                    options['cert'] = (str(cert), str(key))
                    break
        return options

    def _credentials(self, ref: ImageReference, context: ExecutionContext) -> Optional[Credentials]:
        if context.no_creds:
            return None
        if context.credentials and not context.credentials.is_empty:
            return context.credentials
        if context.auth_file:
            return load_auth_file(context.auth_file, ref.registry)
        return None

    def _initial_headers(self, context: ExecutionContext) -> Dict[str, str]:
        if context.registry_token:
            return {'Authorization': f"Bearer {context.registry_token}"}
        return {}

    def _get(self, url, params, headers, tls, deadline) -> requests.Response:
        timeout = self._request_timeout(deadline)
        try:
            return self.session.get(url, params=params, headers=headers, timeout=timeout, **tls)
        except requests.RequestException as e:
            raise TagListError(f"Request to {url} failed: {e}") from e

    def _authenticate(self, response, ref, context, tls, deadline) -> Dict[str, str]:
        """Answer a 401 challenge and return headers for the retried request."""
        scheme, params = parse_challenge(response.headers.get('WWW-Authenticate', ''))
        credentials = self._credentials(ref, context)

        if scheme == 'basic':
            if not credentials:
                raise UnauthorizedError(f"{ref.name}: registry requires credentials")
            token = base64.b64encode(credentials.to_flag().encode('utf-8')).decode('ascii')
            return {'Authorization': f"Basic {token}"}

        if scheme != 'bearer' or 'realm' not in params:
            raise UnauthorizedError(f"{ref.name}: unsupported authentication challenge")

        query = {'scope': params.get('scope') or f"repository:{ref.repository}:pull"}
        if params.get('service'):
            query['service'] = params['service']
        auth = (credentials.username, credentials.password) if credentials else None

        try:
            token_response = self.session.get(
                params['realm'], params=query, auth=auth,
                timeout=self._request_timeout(deadline), **tls,
            )
        except requests.RequestException as e:
            raise TagListError(f"Token request to {params['realm']} failed: {e}") from e

        if token_response.status_code in (401, 403):
            raise UnauthorizedError(f"{ref.name}: token service refused the credentials")
        if token_response.status_code != 200:
            raise TagListError(
                f"{ref.name}: token service returned {token_response.status_code}"
            )
        try:
            body = token_response.json()
        except ValueError as e:
            raise TagListError(f"{ref.name}: invalid token response: {e}") from e
        token = body.get('token') or body.get('access_token')
        if not token:
            raise TagListError(f"{ref.name}: token service returned no token")
        return {'Authorization': f"Bearer {token}"}
