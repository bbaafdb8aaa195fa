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
Credentials and the cached token, persisted between invocations.
"""
import json
import logging
import os

CONFIG_FILE = '.conoha-ojs'
CONFIG_FILE_MODE = 0o600

logger = logging.getLogger("ojsclient.config")

# attribute name -> key in the credential file
_FIELDS = (
    ('username', 'ApiUsername'),
    ('password', 'ApiPassword'),
    ('tenant_name', 'TenantName'),
    ('tenant_id', 'TenantId'),
    ('token', 'Token'),
    ('token_expires', 'TokenExpires'),
    ('endpoint_url', 'EndPointUrl'),
)


class Session(object):
    """
    Everything needed to talk to the storage service.

    ``token`` and ``endpoint_url`` are filled in together by
    :func:`ojsclient.auth.authenticate`; ``token_expires`` is an RFC 1123
    UTC timestamp.
    """

    def __init__(self, username='', password='', tenant_name='',
                 tenant_id='', token='', token_expires='', endpoint_url=''):
        self.username = username
        self.password = password
        self.tenant_name = tenant_name
        self.tenant_id = tenant_id
        self.token = token
        self.token_expires = token_expires
        self.endpoint_url = endpoint_url

    @property
    def has_credentials(self):
        return bool(self.username and self.password and self.tenant_name)

    @property
    def is_authenticated(self):
        return bool(self.token and self.endpoint_url)

    def to_dict(self):
        return {key: getattr(self, attr) or '' for attr, key in _FIELDS}

    @classmethod
    def from_dict(cls, data):
        kwargs = {}
        for attr, key in _FIELDS:
            value = data.get(key)
            kwargs[attr] = value if isinstance(value, str) else ''
        return cls(**kwargs)

    def __eq__(self, other):
        if not isinstance(other, Session):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __repr__(self):
        return '%s(username=%r, tenant_name=%r, endpoint_url=%r, ' \
            'token_expires=%r)' % (self.__class__.__name__, self.username,
                                   self.tenant_name, self.endpoint_url,
                                   self.token_expires)


def default_config_path():
    path = os.environ.get('OJS_CONFIG_FILE')
    if path:
        return path
    return os.path.join(os.path.expanduser('~'), CONFIG_FILE)


class CredentialStore(object):
    """
    Reads and writes a :class:`Session` as JSON.

    The file layout is shared with the older ``conoha-ojs`` tool so an
    existing ``~/.conoha-ojs`` keeps working.
    """

    def __init__(self, path=None):
        self.path = path or default_config_path()

    def load(self):
        """
        Read the credential file.

        A missing or unreadable file is not an error; an empty
        :class:`Session` is returned and the next :meth:`save` rewrites it.
        """
        try:
            with open(self.path) as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.debug('No config file at %s', self.path)
            return Session()
        except (OSError, ValueError) as err:
            logger.warning('Cannot read the config file %s: %s',
                           self.path, err)
            return Session()
        if not isinstance(data, dict):
            logger.warning('Cannot read the config file %s: not a JSON '
                           'object', self.path)
            return Session()
        return Session.from_dict(data)

    def save(self, session):
        """Write ``session`` so that only its owner may read it."""
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC,
                     CONFIG_FILE_MODE)
        with os.fdopen(fd, 'w') as f:
            json.dump(session.to_dict(), f, indent=2, sort_keys=True)
            f.write('\n')
        # an existing file keeps its old mode through os.open
        os.chmod(self.path, CONFIG_FILE_MODE)
        logger.debug('Saved credentials to %s', self.path)

    def remove(self):
        """
        Delete the credential file.

        :returns: True if a file was removed
        """
        try:
            os.remove(self.path)
        except FileNotFoundError:
            return False
        logger.info('Removed %s', self.path)
        return True
