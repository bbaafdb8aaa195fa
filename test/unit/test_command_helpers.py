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

import sys
import unittest

from ojsclient import command_helpers as h
from ojsclient.items import classify_headers
from ojsclient.output import OutputManager

from .utils import CaptureStream, make_session


class TestStatHelpers(unittest.TestCase):

    def setUp(self):
        super(TestStatHelpers, self).setUp()
        self.session = make_session()
        self.options = {
            'human': False,
            'verbose': 1,
        }
        self.out = CaptureStream(sys.stdout)
        self.output_manager = OutputManager(print_stream=self.out)

    def _output(self):
        return self.out.getvalue().decode('utf8')

    def _container(self, **extra):
        headers = {
            'x-container-object-count': '3',
            'x-container-bytes-used': '2048',
            'x-container-meta-color': 'blue',
            'date': 'Wed, 01 Oct 2014 12:00:00 GMT',
            'x-trans-id': 'tx123',
        }
        headers.update(extra)
        return classify_headers('c', headers)

    def _object(self):
        return classify_headers('c/dir/a.txt', {
            'content-type': 'text/plain',
            'content-length': '12',
            'etag': 'abc',
            'last-modified': 'Wed, 01 Oct 2014 12:00:00 GMT',
            'x-object-meta-color': 'blue',
            'accept-ranges': 'bytes',
        })

    def test_stat_container_basic(self):
        container = self._container()
        items = h.stat_container(self.session, container, self.options)
        h.print_container_stats(items, container, self.output_manager)
        expected = '''   Account: nc_tenant
 Container: c
   Objects: 3
     Bytes: 2048
  Read ACL:
 Write ACL:
Meta Color: blue
'''
        self.assertEqual(expected, self._output())

    def test_stat_container_human(self):
        self.options['human'] = True
        container = self._container(**{'x-container-read': '.r:*'})
        items = h.stat_container(self.session, container, self.options)
        self.assertIn(('Bytes', '2.0K'), items)
        self.assertIn(('Read ACL', '.r:*'), items)

    def test_stat_container_verbose(self):
        self.options['verbose'] = 2
        items = h.stat_container(self.session, self._container(),
                                 self.options)
        self.assertEqual(
            ('URL', 'https://objectstore.example.com/v1/nc_tenant/c'),
            items[0])
        self.assertEqual(('Auth Token', 'cachedtoken'), items[1])

    def test_stat_object_basic(self):
        obj = self._object()
        items = h.stat_object(self.session, obj, self.options)
        h.print_object_stats(items, obj, self.output_manager)
        expected = '''       Account: nc_tenant
     Container: c
        Object: dir/a.txt
  Content Type: text/plain
Content Length: 12
 Last Modified: Wed, 01 Oct 2014 12:00:00 GMT
          ETag: abc
    Meta Color: blue
 Accept-Ranges: bytes
'''
        self.assertEqual(expected, self._output())

    def test_stat_object_skips_missing(self):
        obj = classify_headers('c/o', {'content-length': '0'})
        items = h.stat_object(self.session, obj, self.options)
        h.print_object_stats(items, obj, self.output_manager)
        self.assertNotIn('Last Modified', self._output())
        self.assertNotIn('ETag', self._output())


class TestHeadersToItems(unittest.TestCase):

    def test_meta_first(self):
        self.assertEqual(
            [('Meta Color', 'blue'), ('Accept-Ranges', 'bytes')],
            h.headers_to_items({'accept-ranges': 'bytes',
                                'x-object-meta-color': 'blue',
                                'date': 'today'},
                               meta_prefix='x-object-meta-',
                               exclude_headers=('date',)))
