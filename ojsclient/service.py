# Copyright (c) 2010-2013 OpenStack, LLC.
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

import logging
import os
import posixpath

from errno import EEXIST, ENOENT
from os import environ, makedirs
from os.path import dirname, getsize, isdir, isfile, join

from ojsclient import auth
from ojsclient import client
from ojsclient.client import (
    delete_path, get_listing, get_object, head_path, post_path,
    put_container, put_object)
from ojsclient.config import CredentialStore
from ojsclient.exceptions import ClientException, NotFound
from ojsclient.items import Container, classify_headers
from ojsclient.utils import (
    config_true_value, guess_content_type, normalize_object_name,
    parse_timeout, split_meta_items)


DISK_BUFFER = 2 ** 16
logger = logging.getLogger("ojsclient.service")

# events produced by iter_walk
LEAF = 'leaf'
CONTAINER_DONE = 'container_done'


def _build_default_global_options():
    return {
        "verbose": 1,
        "debug": False,
        "info": False,
        "auth_url": environ.get('OJS_AUTH_URL') or auth.AUTH_URL,
        "timeout": environ.get('OJS_TIMEOUT') or client.DEFAULT_TIMEOUT,
        "insecure": config_true_value(environ.get('OJS_INSECURE')),
        "config_file": environ.get('OJS_CONFIG_FILE'),
    }


_default_global_options = _build_default_global_options()


def split_path(path):
    """
    Separate a trailing ``*`` from a path.

    :returns: a tuple of (path without surrounding slashes, wildcard flag);
              the root comes back as ``''``
    """
    path = (path or '').strip()
    wildcard = path.endswith('*')
    if wildcard:
        path = path[:-1]
    return path.strip('/'), wildcard


def join_path(parent, child):
    if not parent:
        return child
    return '%s/%s' % (parent, child)


def iter_walk(service, path):
    """
    Walk the tree under ``path`` depth first.

    Yields ``(LEAF, path)`` for every object and ``(CONTAINER_DONE, path)``
    once every child of a container has been yielded. Children come in
    listing order. The root (``''``) is listed without a HEAD and is never
    reported as done.

    Any request error propagates out of the generator; whatever was already
    yielded stays done.
    """
    stack = [(path, False)]
    while stack:
        current, done = stack.pop()
        if done:
            yield CONTAINER_DONE, current
            continue
        if current:
            item = service._stat(current)
            if not item.is_container:
                yield LEAF, current
                continue
            stack.append((current, True))
        children = service._list(current)
        for child in reversed(children):
            stack.append((join_path(current, child), False))


def walk(service, path, visit, leave=None):
    """
    Call ``visit(leaf_path)`` for every object under ``path``.

    ``leave(container_path)`` is called after a container's children have
    all been visited.

    :returns: the list of leaf paths visited
    """
    visited = []
    for event, target in iter_walk(service, path):
        if event == LEAF:
            visit(target)
            visited.append(target)
        elif leave is not None:
            leave(target)
    return visited


def mkdirs(path):
    try:
        makedirs(path)
    except OSError as err:
        if err.errno != EEXIST:
            raise


def build_post_headers(item, meta=None, read_acl=None, write_acl=None):
    """
    Headers for a metadata update of ``item``.

    A blank metadata value turns into the matching ``X-Remove-`` header.
    ACLs only apply to containers.
    """
    if item.is_container:
        kind = 'Container'
    else:
        kind = 'Object'
    headers = {}
    for name, value in (meta or {}).items():
        if value == '':
            headers['X-Remove-%s-Meta-%s' % (kind, name)] = ''
        else:
            headers['X-%s-Meta-%s' % (kind, name)] = value
    if item.is_container:
        if read_acl is not None:
            headers['X-Container-Read'] = read_acl
        if write_acl is not None:
            headers['X-Container-Write'] = write_acl
    for name in sorted(headers):
        logger.debug('Set header: %s=%s', name, headers[name])
    return headers


class OJSService:
    """
    Service for performing ConoHa Object Storage operations.

    Holds the options, the credential store, the current session and one
    HTTP connection for the lifetime of the object. Use it as a context
    manager so the connection gets closed.
    """
    def __init__(self, options=None, session=None, store=None):
        self._options = dict(_default_global_options, **(options or {}))
        self._options['timeout'] = parse_timeout(self._options['timeout'])
        self.store = store or CredentialStore(self._options['config_file'])
        if session is None:
            session = self.store.load()
        self.session = session
        self.http_conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        if self.http_conn:
            self.http_conn[1].close()
            self.http_conn = None

    # Token handling

    def authenticate(self, username, password, tenant_name):
        """Get a new token for these credentials and store them."""
        session = auth.authenticate(username, password, tenant_name,
                                    auth_url=self._options['auth_url'],
                                    timeout=self._options['timeout'],
                                    insecure=self._options['insecure'])
        self._replace_session(session)
        return session

    def ensure_token(self):
        session = auth.ensure_valid(self.session,
                                    auth_url=self._options['auth_url'],
                                    timeout=self._options['timeout'],
                                    insecure=self._options['insecure'])
        if session is not self.session:
            self._replace_session(session)
        return session

    def _replace_session(self, session):
        self.session = session
        self.store.save(session)
        # the endpoint may have moved
        self.close()

    # Raw calls, token assumed valid

    def _conn(self):
        if not self.http_conn:
            self.http_conn = client.http_connection(
                self.session.endpoint_url,
                insecure=self._options['insecure'],
                timeout=self._options['timeout'])
        return self.http_conn

    def _call(self, func, *args, **kwargs):
        kwargs['http_conn'] = self._conn()
        return func(self.session.endpoint_url, self.session.token,
                    *args, **kwargs)

    def _stat(self, path):
        headers = self._call(head_path, path)
        return classify_headers(path, headers)

    def _list(self, path):
        return self._call(get_listing, path or '/')

    # Operations

    def stat(self, path):
        """
        :returns: a :class:`~ojsclient.items.Container` or
                  :class:`~ojsclient.items.Object`
        """
        self.ensure_token()
        path, _wildcard = split_path(path)
        return self._stat(path)

    def list(self, path='/', recursive=False):
        """
        Names directly under ``path`` (``container`` and ``container*``
        mean the same here), or with ``recursive`` every object below it,
        relative to ``path``.
        """
        self.ensure_token()
        base, _wildcard = split_path(path)
        if not recursive:
            return self._list(base)
        leaves = walk(self, base, lambda leaf: None)
        if leaves == [base]:
            return [posixpath.basename(base)]
        prefix_len = len(base) + 1 if base else 0
        return [leaf[prefix_len:] for leaf in leaves]

    def walk(self, path, visit, leave=None):
        self.ensure_token()
        base, _wildcard = split_path(path)
        return walk(self, base, visit, leave)

    def _targets(self, base, wildcard):
        if not wildcard:
            for event in iter_walk(self, base):
                yield event
            return
        for child in self._list(base):
            for event in iter_walk(self, join_path(base, child)):
                yield event

    def delete(self, path):
        """
        Delete an object, or a container and everything in it.

        ``container*`` deletes what is in the container but keeps the
        container. Yields one result dict per request made; the first failure
        is raised and nothing already deleted is restored.
        """
        self.ensure_token()
        base, wildcard = split_path(path)
        if not base and not wildcard:
            raise ClientException('Refusing to delete the whole account; '
                                  'use "*" to delete every container.')
        for event, target in self._targets(base, wildcard):
            self._call(delete_path, target)
            logger.info('%s was deleted.', target)
            yield {
                'action': ('delete_object' if event == LEAF
                           else 'delete_container'),
                'path': target,
                'success': True,
            }

    def download(self, path, dest='.'):
        """
        Download an object, every object under a container, or (for
        ``container*``) the container's direct children.

        A single object lands in ``dest`` under its base name;
        objects found under a container keep their path relative to it.
        Yields one result dict per file written.
        """
        self.ensure_token()
        base, wildcard = split_path(path)
        out_directory = dest or '.'
        for event, target in self._targets(base, wildcard):
            if event != LEAF:
                continue
            if target == base:
                relative = posixpath.basename(target)
            elif base:
                relative = target[len(base) + 1:]
            else:
                relative = target
            filename = self._local_path(out_directory, relative)
            read_length = self._download_object(target, filename)
            yield {
                'action': 'download_object',
                'path': target,
                'path_local': filename,
                'read_length': read_length,
                'success': True,
            }

    @staticmethod
    def _local_path(out_directory, relative):
        parts = [part for part in relative.split('/') if part]
        if not parts or '..' in parts:
            raise ClientException(
                'Refusing to write object "%s" outside %s'
                % (relative, out_directory))
        return os.path.abspath(join(out_directory, *parts))

    def _download_object(self, path, filename):
        headers, body = self._call(get_object, path,
                                   resp_chunk_size=DISK_BUFFER)
        parent = dirname(filename)
        if parent:
            mkdirs(parent)
        read_length = 0
        try:
            with open(filename, 'wb') as fp:
                for chunk in body:
                    fp.write(chunk)
                    read_length += len(chunk)
        finally:
            body.close()
        logger.info('%s was downloaded to %s.', path, filename)
        return read_length

    def upload(self, container, paths, content_type=None):
        """
        Upload files, and directories recursively, into ``container``.

        Every local path is checked before the first request. The object
        name is the local path as given, normalised. Yields one result dict
        per object stored.
        """
        container, _wildcard = split_path(container)
        files = []
        for path in paths:
            if isdir(path):
                for dirpath, dirnames, filenames in os.walk(path):
                    dirnames.sort()
                    files.extend(join(dirpath, name)
                                 for name in sorted(filenames))
            elif isfile(path):
                files.append(path)
            else:
                raise FileNotFoundError(
                    ENOENT, 'File "%s" not found.' % path, path)
        names = []
        for filename in files:
            try:
                names.append(normalize_object_name(filename))
            except ValueError as err:
                raise ClientException(str(err))

        self.ensure_token()
        for filename, name in zip(files, names):
            object_type = content_type or guess_content_type(filename)
            with open(filename, 'rb') as fp:
                etag = self._call(put_object, join_path(container, name), fp,
                                  content_type=object_type,
                                  content_length=getsize(filename))
            logger.info('%s (content-type: %s) was uploaded.',
                        filename, object_type)
            yield {
                'action': 'upload_object',
                'path': join_path(container, name),
                'path_local': filename,
                'content_type': object_type,
                'etag': etag,
                'success': True,
            }

    def post(self, path, meta=None, read_acl=None, write_acl=None):
        """
        Update metadata and ACLs of a container or an object.

        A container that doesn't exist yet is created with the given
        metadata.

        :returns: a result dict naming the action taken
        """
        if not isinstance(meta, dict):
            meta = split_meta_items(meta)
        self.ensure_token()
        base, _wildcard = split_path(path)
        try:
            item = self._stat(base)
        except NotFound:
            if not base or '/' in base:
                raise
            item = Container(base)
            headers = build_post_headers(item, meta, read_acl, write_acl)
            self._call(put_container, base, headers=headers)
            logger.info('Container %s was created.', base)
            return {'action': 'create_container', 'path': base,
                    'headers': headers, 'success': True}

        headers = build_post_headers(item, meta, read_acl, write_acl)
        self._call(post_path, base, headers)
        return {'action': 'post_%s' % item.kind, 'path': base,
                'headers': headers, 'success': True}
