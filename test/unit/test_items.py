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

import unittest
from datetime import datetime, timezone

from ojsclient import items
from ojsclient.exceptions import MalformedHeader


class TestClassifyHeaders(unittest.TestCase):

    def test_container(self):
        item = items.classify_headers('c', {
            'X-Container-Object-Count': '3',
            'X-Container-Bytes-Used': '120',
            'X-Container-Read': '.r:*',
            'X-Container-Meta-Color': 'blue',
            'Date': 'Wed, 01 Oct 2014 12:00:00 GMT',
        })
        self.assertIsInstance(item, items.Container)
        self.assertTrue(item.is_container)
        self.assertEqual('container', item.kind)
        self.assertEqual('c', item.name)
        self.assertEqual(3, item.object_count)
        self.assertEqual(120, item.byte_count)
        self.assertEqual('.r:*', item.read_acl)
        self.assertEqual('', item.write_acl)
        self.assertEqual({'x-container-meta-color': 'blue',
                          'date': 'Wed, 01 Oct 2014 12:00:00 GMT'},
                         item.metadata)

    def test_object(self):
        item = items.classify_headers('c/a.txt', {
            'Content-Type': 'text/plain',
            'Content-Length': '12',
            'ETag': 'abc',
            'Last-Modified': 'Wed, 01 Oct 2014 12:00:00 GMT',
            'X-Object-Meta-Color': 'blue',
        })
        self.assertIsInstance(item, items.Object)
        self.assertFalse(item.is_container)
        self.assertEqual('c/a.txt', item.name)
        self.assertEqual('text/plain', item.content_type)
        self.assertEqual(12, item.content_length)
        self.assertEqual('abc', item.etag)
        self.assertEqual(datetime(2014, 10, 1, 12, tzinfo=timezone.utc),
                         item.last_modified)
        self.assertEqual({'x-object-meta-color': 'blue'}, item.metadata)

    def test_both_container_headers_are_needed(self):
        item = items.classify_headers('c', {
            'X-Container-Object-Count': '3',
        })
        self.assertIsInstance(item, items.Object)
        self.assertEqual({'x-container-object-count': '3'}, item.metadata)

        item = items.classify_headers('c', {
            'X-Container-Bytes-Used': '3',
        })
        self.assertIsInstance(item, items.Object)

    def test_header_names_are_case_insensitive(self):
        self.assertTrue(items.is_container_headers({
            'x-container-object-count': '0',
            'X-CONTAINER-BYTES-USED': '0',
        }))

    def test_malformed_counts(self):
        for headers in ({'X-Container-Object-Count': 'many',
                         'X-Container-Bytes-Used': '0'},
                        {'X-Container-Object-Count': '0',
                         'X-Container-Bytes-Used': '-1'},
                        {'X-Container-Object-Count': '\xb2',
                         'X-Container-Bytes-Used': '1'}):
            with self.assertRaises(MalformedHeader) as exc_context:
                items.classify_headers('c', headers)
            self.assertIn(exc_context.exception.header,
                          ('x-container-object-count',
                           'x-container-bytes-used'))

    def test_malformed_object_headers(self):
        self.assertRaises(MalformedHeader, items.classify_headers, 'c/o',
                          {'Content-Length': '1.5'})
        self.assertRaises(MalformedHeader, items.classify_headers, 'c/o',
                          {'Last-Modified': 'yesterday'})

    def test_repr(self):
        self.assertEqual("Container('c')", repr(items.Container('c')))
        self.assertEqual("Object('c/o')", repr(items.Object('c/o')))
