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

from ojsclient.utils import prt_bytes


CONTAINER_META_PREFIX = 'x-container-meta-'
OBJECT_META_PREFIX = 'x-object-meta-'
EXCLUDED_HEADERS = ('date', 'content-length', 'x-trans-id',
                    'x-openstack-request-id')


def account_name(session):
    return session.endpoint_url.rstrip('/').rsplit('/', 1)[-1]


def stat_container(session, container, options):
    items = []
    if options['verbose'] > 1:
        items.extend([
            ('URL', '%s/%s' % (session.endpoint_url.rstrip('/'),
                               container.name)),
            ('Auth Token', session.token),
        ])
    items.extend([
        ('Account', account_name(session)),
        ('Container', container.name or '/'),
        ('Objects', prt_bytes(container.object_count,
                              options['human']).lstrip()),
        ('Bytes', prt_bytes(container.byte_count,
                            options['human']).lstrip()),
        ('Read ACL', container.read_acl),
        ('Write ACL', container.write_acl),
    ])
    return items


def print_container_stats(items, container, output_manager):
    items.extend(headers_to_items(
        container.metadata,
        meta_prefix=CONTAINER_META_PREFIX,
        exclude_headers=EXCLUDED_HEADERS
    ))
    # line up the items nicely
    offset = max(len(item) for item, value in items)
    output_manager.print_items(items, offset=offset)


def stat_object(session, obj, options):
    items = []
    if options['verbose'] > 1:
        items.extend([
            ('URL', '%s/%s' % (session.endpoint_url.rstrip('/'), obj.name)),
            ('Auth Token', session.token),
        ])
    container, _sep, name = obj.name.partition('/')
    if obj.last_modified is not None:
        last_modified = obj.last_modified.strftime(
            '%a, %d %b %Y %H:%M:%S GMT')
    else:
        last_modified = None
    items.extend([
        ('Account', account_name(session)),
        ('Container', container),
        ('Object', name),
        ('Content Type', obj.content_type),
        ('Content Length', prt_bytes(obj.content_length,
                                     options['human']).lstrip()),
        ('Last Modified', last_modified),
        ('ETag', obj.etag),
    ])
    return items


def print_object_stats(items, obj, output_manager):
    items.extend(headers_to_items(
        obj.metadata,
        meta_prefix=OBJECT_META_PREFIX,
        exclude_headers=EXCLUDED_HEADERS
    ))
    # line up the items nicely
    offset = max(len(item) for item, value in items)
    output_manager.print_items(items, offset=offset, skip_missing=True)


def headers_to_items(headers, meta_prefix='', exclude_headers=None):
    exclude_headers = exclude_headers or []
    other_items = []
    meta_items = []
    for key, value in sorted(headers.items()):
        if key not in exclude_headers:
            if key.startswith(meta_prefix):
                meta_key = 'Meta %s' % key[len(meta_prefix):].title()
                meta_items.append((meta_key, value))
            else:
                other_items.append((key.title(), value))
    return meta_items + other_items
