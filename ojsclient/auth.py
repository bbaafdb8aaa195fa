# Copyright (c) 2010-2012 OpenStack, LLC.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or
# implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Token acquisition against a Keystone v2.0 identity service, and the
decision whether a cached token can still be used.
"""
import json
import logging
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime

from ojsclient import client
from ojsclient.config import Session
from ojsclient.exceptions import AuthError, MissingFieldError, \
    NotAuthenticated

AUTH_URL = 'https://ident-r1nd1001.cnode.jp/v2.0'
SERVICE_TYPE = 'object-store'

logger = logging.getLogger("ojsclient.auth")


def parse_rfc3339(value):
    """
    :returns: an aware datetime
    :raises ValueError: ``value`` is not an RFC 3339 timestamp
    """
    if not isinstance(value, str):
        raise ValueError('expected a string, got %r' % (value,))
    text = value.strip()
    if text[-1:] in ('Z', 'z'):
        text = text[:-1] + '+00:00'
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_expiry(expires):
    """Normalise an expiry to the RFC 1123 form kept in the config file."""
    return format_datetime(expires.astimezone(timezone.utc), usegmt=True)


def parse_expiry(value):
    """
    Read back an expiry written by :func:`format_expiry`.

    :returns: an aware UTC datetime, or None if ``value`` can't be parsed
    """
    if not value:
        return None
    try:
        expires = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError, OverflowError):
        return None
    if expires is None:
        return None
    if expires.tzinfo is None:
        expires = expires.replace(tzinfo=timezone.utc)
    return expires


class TokenInfo(object):

    def __init__(self, id, expires, tenant_id=''):
        self.id = id
        self.expires = expires
        self.tenant_id = tenant_id

    @classmethod
    def from_dict(cls, token):
        token_id = token.get('id')
        if not token_id:
            raise MissingFieldError('id')
        if 'expires' not in token:
            raise MissingFieldError('expires')
        try:
            expires = parse_rfc3339(token['expires'])
        except ValueError:
            raise AuthError('Token expiry is not a valid timestamp: %r'
                            % (token['expires'],))
        tenant = token.get('tenant') or {}
        return cls(token_id, expires, tenant.get('id') or '')


class CatalogEntry(object):

    def __init__(self, type, endpoints):
        self.type = type
        self.endpoints = endpoints

    @classmethod
    def from_dict(cls, entry):
        endpoints = entry.get('endpoints')
        if not isinstance(endpoints, list):
            endpoints = []
        return cls(entry.get('type'), endpoints)

    @property
    def public_url(self):
        if not self.endpoints or not isinstance(self.endpoints[0], dict):
            raise MissingFieldError('publicURL')
        url = self.endpoints[0].get('publicURL')
        if not url:
            raise MissingFieldError('publicURL')
        return url


class AccessInfo(object):
    """The ``access`` section of a v2.0 token response, validated."""

    def __init__(self, token, service_catalog):
        self.token = token
        self.service_catalog = service_catalog

    @classmethod
    def from_dict(cls, data):
        access = data.get('access')
        if not isinstance(access, dict):
            raise MissingFieldError('access')
        token = access.get('token')
        if not isinstance(token, dict):
            raise MissingFieldError('token')
        catalog = access.get('serviceCatalog')
        if not isinstance(catalog, list):
            raise MissingFieldError('serviceCatalog')
        return cls(TokenInfo.from_dict(token),
                   [CatalogEntry.from_dict(entry) for entry in catalog
                    if isinstance(entry, dict)])

    def endpoint_url(self, service_type=SERVICE_TYPE):
        for entry in self.service_catalog:
            if entry.type == service_type:
                return entry.public_url
        raise AuthError('Endpoint for %s not found' % service_type)


def _error_envelope(error):
    if not isinstance(error, dict):
        return AuthError('Authentication failed: %s' % (error,))
    code = error.get('code', '')
    try:
        code = int(code)
    except (TypeError, ValueError):
        pass
    return AuthError('%s(%s): %s' % (error.get('title', ''), code,
                                     error.get('message', '')))


def parse_auth_response(resp, content):
    """
    Decode an identity response into an :class:`AccessInfo`.

    :raises AuthError: the service sent an error envelope, something that
                       isn't JSON, or JSON lacking a required field
    """
    try:
        data = json.loads(content.decode('utf-8'))
    except (UnicodeDecodeError, ValueError):
        raise AuthError.from_response(resp, 'Auth POST failed', content)
    if not isinstance(data, dict):
        raise AuthError.from_response(resp, 'Auth POST failed', content)
    if 'error' in data:
        raise _error_envelope(data['error'])
    if resp.status < 200 or resp.status >= 300:
        raise AuthError.from_response(resp, 'Auth POST failed', content)
    return AccessInfo.from_dict(data)


def authenticate(username, password, tenant_name, auth_url=AUTH_URL,
                 timeout=client.DEFAULT_TIMEOUT, insecure=False):
    """
    Get a fresh token and the object-store endpoint.

    :returns: a new :class:`~ojsclient.config.Session`
    :raises AuthError: see :func:`parse_auth_response`
    """
    url = auth_url.rstrip('/') + '/tokens'
    parsed, conn = client.http_connection(url, insecure=insecure,
                                          timeout=timeout)
    method = 'POST'
    headers = {'Content-Type': 'application/json',
               'Accept': 'application/json'}
    body = json.dumps({
        'auth': {
            'tenantName': tenant_name,
            'passwordCredentials': {
                'username': username,
                'password': password,
            },
        },
    })
    try:
        conn.request(method, parsed.path, body, headers)
        resp = conn.getresponse()
        content = resp.read()
    finally:
        conn.close()
    # a successful body carries the token, keep it out of the logs
    client.http_log((url, method,), {'headers': headers}, resp,
                    content if resp.status >= 300 else None)

    access = parse_auth_response(resp, content)
    session = Session(username=username,
                      password=password,
                      tenant_name=tenant_name,
                      tenant_id=access.token.tenant_id,
                      token=access.token.id,
                      token_expires=format_expiry(access.token.expires),
                      endpoint_url=access.endpoint_url())
    logger.info('Authenticated as %s; token expires %s',
                username, session.token_expires)
    return session


def needs_refresh(session, now=None):
    if not session.token or not session.endpoint_url:
        return True
    expires = parse_expiry(session.token_expires)
    if expires is None:
        return True
    now = now or datetime.now(timezone.utc)
    return expires <= now


def ensure_valid(session, auth_url=AUTH_URL, timeout=client.DEFAULT_TIMEOUT,
                 insecure=False, now=None):
    """
    Make sure ``session`` holds a usable token.

    :returns: ``session`` itself when its token is still valid, otherwise
              the new session from :func:`authenticate`
    :raises NotAuthenticated: no stored username/password/tenant name
    :raises AuthError: re-authentication failed
    """
    if not session.has_credentials:
        raise NotAuthenticated()

    if not needs_refresh(session, now=now):
        logger.info('Using the cached token.')
        return session

    logger.info('Token missing or expired; re-authenticating as %s',
                session.username)
    return authenticate(session.username, session.password,
                        session.tenant_name, auth_url=auth_url,
                        timeout=timeout, insecure=insecure)
