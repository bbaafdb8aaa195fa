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
Records built from the headers of a HEAD on a container or an object.

The storage API has no field saying what a path is. A response carrying
both ``X-Container-Object-Count`` and ``X-Container-Bytes-Used`` describes
a container; anything else is an object.
"""
from email.utils import parsedate_to_datetime

from ojsclient.exceptions import MalformedHeader

OBJECT_COUNT_HEADER = 'x-container-object-count'
BYTES_USED_HEADER = 'x-container-bytes-used'
READ_ACL_HEADER = 'x-container-read'
WRITE_ACL_HEADER = 'x-container-write'


class StorageItem(object):
    kind = None

    def __init__(self, name, metadata=None):
        self.name = name
        self.metadata = dict(metadata or {})

    @property
    def is_container(self):
        return self.kind == 'container'

    def __repr__(self):
        return '%s(%r)' % (self.__class__.__name__, self.name)


class Container(StorageItem):
    kind = 'container'

    def __init__(self, name, object_count=0, byte_count=0, read_acl='',
                 write_acl='', metadata=None):
        super(Container, self).__init__(name, metadata)
        self.object_count = object_count
        self.byte_count = byte_count
        self.read_acl = read_acl
        self.write_acl = write_acl


class Object(StorageItem):
    kind = 'object'

    def __init__(self, name, content_type='', content_length=0,
                 last_modified=None, etag='', metadata=None):
        super(Object, self).__init__(name, metadata)
        self.content_type = content_type
        self.content_length = content_length
        self.last_modified = last_modified
        self.etag = etag


def parse_uint(header, value):
    value = value.strip()
    if not (value.isascii() and value.isdigit()):
        raise MalformedHeader(header, value)
    return int(value)


def parse_http_date(header, value):
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError, OverflowError):
        raise MalformedHeader(header, value)
    if parsed is None:
        raise MalformedHeader(header, value)
    return parsed


def is_container_headers(headers):
    names = set(name.lower() for name in headers)
    return OBJECT_COUNT_HEADER in names and BYTES_USED_HEADER in names


def classify_headers(path, headers):
    """
    Build a :class:`Container` or :class:`Object` for ``path``.

    Header names are lower-cased; headers without a field of their own end
    up in ``metadata``.

    :raises MalformedHeader: a numeric or date header doesn't parse
    """
    if is_container_headers(headers):
        item = Container(path)
        for name, value in headers.items():
            name = name.lower()
            if name == BYTES_USED_HEADER:
                item.byte_count = parse_uint(name, value)
            elif name == OBJECT_COUNT_HEADER:
                item.object_count = parse_uint(name, value)
            elif name == READ_ACL_HEADER:
                item.read_acl = value
            elif name == WRITE_ACL_HEADER:
                item.write_acl = value
            else:
                item.metadata[name] = value
        return item

    item = Object(path)
    for name, value in headers.items():
        name = name.lower()
        if name == 'content-type':
            item.content_type = value
        elif name == 'content-length':
            item.content_length = parse_uint(name, value)
        elif name == 'etag':
            item.etag = value
        elif name == 'last-modified':
            item.last_modified = parse_http_date(name, value)
        else:
            item.metadata[name] = value
    return item
