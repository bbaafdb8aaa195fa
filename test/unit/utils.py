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

import functools
import io
import json
import os
import sys
import unittest
from unittest import mock

from requests import RequestException
from requests.structures import CaseInsensitiveDict
from urllib.parse import urlparse, ParseResult

from ojsclient import shell as s
from ojsclient.config import Session

EMPTY_ETAG = 'd41d8cd98f00b204e9800998ecf8427e'
ENDPOINT_URL = 'https://objectstore.example.com/v1/nc_tenant'


def make_session(**kwargs):
    """A session holding credentials and a token valid until 2099."""
    fields = {
        'username': 'user',
        'password': 'secret',
        'tenant_name': 'tenant',
        'tenant_id': 'tenant-id',
        'token': 'cachedtoken',
        'token_expires': 'Thu, 01 Jan 2099 00:00:00 GMT',
        'endpoint_url': ENDPOINT_URL,
    }
    fields.update(kwargs)
    return Session(**fields)


def auth_response_body(token='newtoken',
                       expires='2099-01-01T00:00:00Z',
                       tenant_id='tenant-id',
                       endpoint_url=ENDPOINT_URL):
    return json.dumps({
        'access': {
            'token': {
                'id': token,
                'expires': expires,
                'tenant': {'id': tenant_id, 'name': 'tenant'},
            },
            'serviceCatalog': [
                {'type': 'compute',
                 'endpoints': [{'publicURL': 'https://compute.example.com'}]},
                {'type': 'object-store',
                 'endpoints': [{'publicURL': endpoint_url}]},
            ],
        },
    }).encode('utf-8')


def container_headers(count=0, bytes_used=0, **extra):
    headers = {'x-container-object-count': str(count),
               'x-container-bytes-used': str(bytes_used)}
    headers.update(extra)
    return headers


def object_headers(length=0, content_type='text/plain', **extra):
    headers = {'content-length': str(length),
               'content-type': content_type,
               'etag': EMPTY_ETAG,
               'last-modified': 'Wed, 01 Oct 2014 12:00:00 GMT'}
    headers.update(extra)
    return headers


class StubResponse(object):
    """
    Placeholder structure for use with fake_http_connect's code_iter to modify
    response attributes (status, body, headers) on a per-request basis.
    """

    def __init__(self, status=200, body=b'', headers=None):
        self.status = status
        self.body = body
        self.headers = headers or {}

    def __repr__(self):
        return '%s(%r, %r, %r)' % (self.__class__.__name__, self.status,
                                   self.body, self.headers)


def fake_http_connect(*code_iter, **kwargs):
    """
    Generate a callable which yields a series of stubbed responses. The same
    HTTP connection is reused for every request of an operation, so each call
    stands for one HTTP response rather than one connection.
    """

    class FakeConn(object):

        def __init__(self, status, body=b'', headers=None):
            self.status_code = self.status = status
            self.reason = 'Fake'
            self.scheme = 'https'
            self.host = '1.2.3.4'
            self.port = '1234'
            self.content = self.body = body
            self.headers = headers or {}
            self.request = None
            self._closed = False

        def getresponse(self):
            return self

        def getheaders(self):
            if self.headers:
                return self.headers.items()
            headers = {'content-length': str(len(self.body)),
                       'content-type': 'x-application/test',
                       'last-modified': 'Thu, 01 Jan 1970 00:00:01 GMT',
                       'etag': '"%s"' % EMPTY_ETAG}
            if 'headers' in kwargs:
                headers.update(kwargs['headers'])
            return headers.items()

        def read(self, amt=None):
            rv = self.body[:amt]
            if amt is not None:
                self.body = self.body[amt:]
            else:
                self.body = b''
            return rv

        def getheader(self, name, default=None):
            return dict(self.getheaders()).get(name.lower(), default)

        def close(self):
            self._closed = True

    code_iter = iter(code_iter)

    def connect(*args, **ckwargs):
        status = next(code_iter)
        if isinstance(status, StubResponse):
            fake_conn = FakeConn(status.status, body=status.body,
                                 headers=status.headers)
        else:
            fake_conn = FakeConn(status, body=kwargs.get('body', b''))
        if fake_conn.status <= 0:
            raise RequestException()
        return fake_conn

    connect.code_iter = code_iter
    return connect


class MockHttpTest(unittest.TestCase):

    def setUp(self):
        super(MockHttpTest, self).setUp()
        self.fake_connect = None
        self.request_log = []

        # Capture output, since the test-runner stdout/stderr monkey-patching
        # won't cover the references to sys.stdout/sys.stderr in
        # ojsclient.output
        self.capture_output = CaptureOutput()
        if 'OJSCLIENT_DEBUG' not in os.environ:
            self.capture_output.__enter__()
            self.addCleanup(self.capture_output.__exit__)

        def fake_http_connection(*args, **kwargs):
            self.validateMockedRequestsConsumed()
            self.request_log = []
            self.fake_connect = fake_http_connect(*args, **kwargs)
            storage_url = kwargs.get('storage_url')
            auth_token = kwargs.get('auth_token')
            exc = kwargs.get('exc')

            def wrapper(url, insecure=False, cacert=None, timeout=None):
                if storage_url:
                    self.assertEqual(storage_url, url)

                parsed = urlparse(url)

                class RequestsWrapper(object):
                    def close(self):
                        if hasattr(self, 'resp'):
                            self.resp.close()
                conn = RequestsWrapper()

                def request(method, path, *args, **kwargs):
                    try:
                        conn.resp = self.fake_connect()
                    except StopIteration:
                        self.fail('Unexpected %s request for %s' % (
                            method, path))
                    self.request_log.append((parsed, method, path, args,
                                             kwargs, conn.resp))
                    conn.host = conn.resp.host
                    conn.resp.request = RequestsWrapper()
                    conn.resp.request.url = '%s://%s%s' % (
                        conn.resp.scheme, conn.resp.host, path)
                    if auth_token:
                        headers = args[1]
                        self.assertEqual(auth_token,
                                         headers.get('X-Auth-Token'))
                    if exc:
                        raise exc
                    return conn.resp

                conn.request = request

                def getresponse():
                    return conn.resp
                conn.getresponse = getresponse

                return parsed, conn
            return wrapper
        self.fake_http_connection = fake_http_connection

    def iter_request_log(self):
        for parsed, method, path, args, kwargs, resp in self.request_log:
            parts = parsed._asdict()
            parts['path'] = path
            full_path = ParseResult(**parts).geturl()
            args = list(args)
            log = dict(zip(('body', 'headers'), args))
            log.update({
                'method': method,
                'full_path': full_path,
                'parsed_path': urlparse(full_path),
                'path': path,
                'headers': CaseInsensitiveDict(log.get('headers')),
                'resp': resp,
                'status': resp.status,
            })
            yield log

    orig_assertEqual = unittest.TestCase.assertEqual

    def assert_request_equal(self, expected, real_request):
        method, path = expected[:2]
        if urlparse(path).scheme:
            match_path = real_request['full_path']
        else:
            match_path = real_request['path']
        self.assertEqual((method, path), (real_request['method'],
                                          match_path))
        if len(expected) > 2:
            body = expected[2]
            real_request['expected'] = body
            err_msg = 'Body mismatch for %(method)s %(path)s, ' \
                'expected %(expected)r, and got %(body)r' % real_request
            self.orig_assertEqual(body, real_request['body'], err_msg)

        if len(expected) > 3:
            headers = CaseInsensitiveDict(expected[3])
            for key, value in headers.items():
                real_request['key'] = key
                real_request['expected_value'] = value
                real_request['value'] = real_request['headers'].get(key)
                err_msg = (
                    'Header mismatch on %(key)r, '
                    'expected %(expected_value)r and got %(value)r '
                    'for %(method)s %(path)s %(headers)r' % real_request)
                self.orig_assertEqual(value, real_request['value'],
                                      err_msg)
            real_request['extra_headers'] = dict(
                (key, value) for key, value in real_request['headers'].items()
                if key not in headers)
            if real_request['extra_headers']:
                self.fail('Received unexpected headers for %(method)s '
                          '%(path)s, got %(extra_headers)r' % real_request)

    def assertRequests(self, expected_requests):
        """
        Make sure some requests were made like you expected, provide a list of
        expected requests, typically in the form of [(method, path), ...]
        or [(method, path, body, headers), ...]
        """
        real_requests = self.iter_request_log()
        for expected in expected_requests:
            real_request = next(real_requests)
            self.assert_request_equal(expected, real_request)
        try:
            real_request = next(real_requests)
        except StopIteration:
            pass
        else:
            self.fail('At least one extra request received: %r' %
                      real_request)

    def validateMockedRequestsConsumed(self):
        if not self.fake_connect:
            return
        unused_responses = list(self.fake_connect.code_iter)
        if unused_responses:
            self.fail('Unused responses %r' % (unused_responses,))

    def tearDown(self):
        self.validateMockedRequestsConsumed()
        super(MockHttpTest, self).tearDown()


class CaptureStreamPrinter(object):
    """
    Anything written here is encoded as utf-8 and written to the parent
    CaptureStream
    """
    def __init__(self, captured_stream):
        self._captured_stream = captured_stream

    def write(self, data):
        # No encoding, just convert the raw bytes into a str for testing
        # The below call also validates that we have a byte string.
        self._captured_stream.write(
            data if isinstance(data, bytes) else data.encode('utf8'))


class CaptureStream(object):

    def __init__(self, stream):
        self.stream = stream
        self._buffer = io.BytesIO()
        self._capture = CaptureStreamPrinter(self._buffer)
        self.streams = [self._capture]

    @property
    def buffer(self):
        return self._buffer

    def flush(self):
        pass

    def write(self, *args, **kwargs):
        for stream in self.streams:
            stream.write(*args, **kwargs)

    def getvalue(self):
        return self._buffer.getvalue()

    def clear(self):
        self._buffer.truncate(0)
        self._buffer.seek(0)


class CaptureOutput(object):

    def __init__(self):
        self._out = CaptureStream(sys.stdout)
        self._err = CaptureStream(sys.stderr)

        WrappedOutputManager = functools.partial(s.OutputManager,
                                                 print_stream=self._out,
                                                 error_stream=self._err)

        self.patchers = [
            mock.patch('ojsclient.shell.OutputManager',
                       WrappedOutputManager),
            mock.patch('sys.stdout', self._out),
            mock.patch('sys.stderr', self._err),
        ]

    def __enter__(self):
        for patcher in self.patchers:
            patcher.start()
        return self

    def __exit__(self, *args, **kwargs):
        for patcher in self.patchers:
            patcher.stop()

    @property
    def out(self):
        return self._out.getvalue().decode('utf8')

    @property
    def err(self):
        return self._err.getvalue().decode('utf8')

    def clear(self):
        self._out.clear()
        self._err.clear()

    # act like the string captured by stdout

    def __str__(self):
        return self.out

    def __len__(self):
        return len(self.out)

    def __eq__(self, other):
        return self.out == other

    def __ne__(self, other):
        return not self.__eq__(other)

    def __getattr__(self, name):
        return getattr(self.out, name)
