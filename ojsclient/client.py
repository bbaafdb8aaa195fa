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
ConoHa Object Storage client library used internally
"""
import logging

import requests
from requests.structures import CaseInsensitiveDict
from urllib.parse import quote, unquote, urlparse

from ojsclient import version as ojsclient_version
from ojsclient.exceptions import (
    ClientException, Conflict, InvalidUrl, NotFound, ServerError)

#: Per-request socket timeout in seconds, unless the caller configures one.
DEFAULT_TIMEOUT = 60
#: Swift never returns more than this many names in one listing page.
LISTING_LIMIT = 10000
DOT_SEGMENTS = {'.': '%2E', '..': '%2E%2E'}
USER_METADATA_TYPE = tuple('x-%s-meta-' % type_ for type_ in
                           ('container', 'account', 'object'))

logger = logging.getLogger("ojsclient")
logger.addHandler(logging.NullHandler())

#: Default behaviour is to redact header values known to contain secrets,
#: such as ``X-Auth-Token``. Up to the first 16 chars may be revealed.
#:
#: To disable, set the value of ``redact_sensitive_headers`` to ``False``.
logger_settings = {
    'redact_sensitive_headers': True,
    'reveal_sensitive_prefix': 16
}
#: Header names must be added in all lower case.
LOGGER_SENSITIVE_HEADERS = [
    'x-auth-token', 'x-storage-token', 'x-container-meta-temp-url-key',
    'x-account-meta-temp-url-key', 'set-cookie'
]


def safe_value(name, value):
    """
    Only show up to logger_settings['reveal_sensitive_prefix'] characters
    from a sensitive header.

    :param name: Header name
    :param value: Header value
    :return: Safe header value
    """
    if name.lower() in LOGGER_SENSITIVE_HEADERS:
        prefix_length = logger_settings.get('reveal_sensitive_prefix', 16)
        prefix_length = int(
            min(prefix_length, (len(value) ** 2) / 32, len(value) / 2)
        )
        return value[0:prefix_length] + '...'
    return value


def scrub_headers(headers):
    """
    Redact header values that can contain sensitive information that
    should not be logged.

    :param headers: Either a dict or an iterable of two-element tuples
    :return: Safe dictionary of headers with sensitive information removed
    """
    if isinstance(headers, dict):
        headers = headers.items()
    headers = [
        (parse_header_string(key), parse_header_string(val))
        for (key, val) in headers
    ]
    if not logger_settings.get('redact_sensitive_headers', True):
        return dict(headers)
    return {key: safe_value(key, val) for (key, val) in headers}


def http_log(args, kwargs, resp, body):
    if not logger.isEnabledFor(logging.INFO):
        return

    # create and log equivalent curl command
    string_parts = ['curl -i']
    for element in args:
        if element == 'HEAD':
            string_parts.append(' -I')
        elif element in ('GET', 'POST', 'PUT', 'DELETE'):
            string_parts.append(' -X %s' % element)
        else:
            string_parts.append(' %s' % parse_header_string(element))
    if 'headers' in kwargs:
        headers = scrub_headers(kwargs['headers'])
        for element in headers:
            header = ' -H "%s: %s"' % (element, headers[element])
            string_parts.append(header)

    # log response as debug if good, or info if error
    if resp.status < 300:
        log_method = logger.debug
    else:
        log_method = logger.info

    log_method("REQ: %s", "".join(string_parts))
    log_method("RESP STATUS: %s %s", resp.status, resp.reason)
    log_method("RESP HEADERS: %s", scrub_headers(resp.getheaders()))
    if body:
        log_method("RESP BODY: %s", body)


def parse_header_string(data):
    if not isinstance(data, (str, bytes)):
        data = str(data)
    if isinstance(data, bytes):
        try:
            data = data.decode('ascii')
        except UnicodeDecodeError:
            data = quote(data)
    try:
        unquoted = unquote(data, errors='strict')
    except UnicodeDecodeError:
        return data
    return unquoted


def encode_utf8(value):
    if type(value) in (int, float, bool):
        value = str(value)
    if isinstance(value, str):
        value = value.encode('utf8')
    return value


def encode_meta_headers(headers):
    """Only encode metadata headers keys"""
    ret = {}
    for header, value in headers.items():
        value = encode_utf8(value)
        header = header.lower()

        if (isinstance(header, str) and
                header.startswith(USER_METADATA_TYPE)):
            header = encode_utf8(header)

        ret[header] = value
    return ret


class LowerKeyCaseInsensitiveDict(CaseInsensitiveDict):
    """
    CaseInsensitiveDict returning lower case keys for items()
    """

    def __iter__(self):
        return iter(self._store.keys())


def build_storage_url(endpoint_url, *segments):
    """
    Join the storage endpoint with path segments.

    Exactly one trailing slash is dropped from ``endpoint_url`` and every
    segment loses its leading and trailing slashes before they are joined,
    so ``build_storage_url('https://x/', 'a')`` and
    ``build_storage_url('https://x', '/a/')`` give the same URL.

    :raises InvalidUrl: the result is not an absolute http(s) URL
    """
    rawurl = endpoint_url or ''
    if rawurl.endswith('/'):
        rawurl = rawurl[:-1]

    parts = []
    for segment in segments:
        for part in segment.strip('/').split('/'):
            # keep dot segments from being collapsed on the way out
            parts.append(DOT_SEGMENTS.get(part) or quote(part))
    rawurl += '/' + '/'.join(parts)

    try:
        parsed = urlparse(rawurl)
        # touching .port validates it
        parsed.port
    except ValueError as err:
        raise InvalidUrl('Invalid storage URL "%s": %s' % (rawurl, err))
    if parsed.scheme not in ('http', 'https') or not parsed.hostname:
        raise InvalidUrl('Invalid storage URL "%s"' % rawurl)
    logger.debug(rawurl)
    return rawurl


def extract_error_message(body):
    """
    Pull the message out of the HTML error page the storage service sends.

    Returns the text between the first ``<p>`` and ``</p>``, or the whole
    body when there is no such fragment.
    """
    if isinstance(body, bytes):
        body = body.decode('utf-8', 'replace')
    body = body or ''
    start = body.find('<p>')
    if start < 0:
        return body
    end = body.find('</p>', start)
    if end < 0:
        return body
    return body[start + 3:end]


def classify_response(resp, body, msg):
    """
    Raise the typed exception matching an HTTP response, if any.

    :param resp: an adapted response (see :meth:`HTTPConnection.getresponse`)
    :param body: the response body, already read
    :param msg: what was being attempted, e.g. ``'Object DELETE failed'``
    :raises NotFound: status 404
    :raises Conflict: status 409
    :raises ServerError: any other status >= 400
    """
    if resp.status < 400:
        return
    if resp.status == 404:
        raise NotFound.from_response(resp, msg, body)
    if resp.status == 409:
        raise Conflict.from_response(resp, msg, body)
    message = extract_error_message(body)
    raise ServerError.from_response(
        resp, '%s: %s' % (msg, message) if message else msg, body,
        message=message)


class _ObjectBody:
    """
    Readable and iterable object body response wrapper.
    """

    def __init__(self, resp, chunk_size, conn_to_close):
        """
        Wrap the underlying response

        :param resp: the response to wrap
        :param chunk_size: number of bytes to return each iteration/next call
        """
        self.resp = resp
        self.chunk_size = chunk_size
        self.conn_to_close = conn_to_close

    def read(self, length=None):
        buf = self.resp.read(length)
        if length != 0 and not buf:
            self.close()
        return buf

    def __iter__(self):
        return self

    def __next__(self):
        buf = self.read(self.chunk_size)
        if not buf:
            raise StopIteration()
        return buf

    def close(self):
        self.resp.close()
        if self.conn_to_close:
            self.conn_to_close.close()


class HTTPConnection:
    def __init__(self, url, insecure=False, cacert=None,
                 default_user_agent=None, timeout=DEFAULT_TIMEOUT):
        """
        Make an HTTPConnection or HTTPSConnection

        :param url: url to connect to
        :param insecure: Allow to access servers without checking SSL certs.
                         The server's certificate will not be verified.
        :param cacert: A CA bundle file to use in verifying a TLS server
                       certificate.
        :param default_user_agent: Set the User-Agent header on every request.
                                   If set to None (default), the user agent
                                   will be "python-ojsclient-<version>".
        :param timeout: socket read timeout value, passed directly to
                        the requests library.
        :raises InvalidUrl: Unable to handle protocol scheme
        """
        self.url = url
        self.parsed_url = urlparse(url)
        self.host = self.parsed_url.netloc
        self.requests_args = {}
        self.request_session = requests.Session()
        # Don't use requests's default headers
        self.request_session.headers = None
        self.resp = None
        if self.parsed_url.scheme not in ('http', 'https'):
            raise InvalidUrl('Unsupported scheme "%s" in url "%s"'
                             % (self.parsed_url.scheme, url))
        self.requests_args['verify'] = not insecure
        if cacert and not insecure:
            self.requests_args['verify'] = cacert
        self.requests_args['stream'] = True
        if default_user_agent is None:
            default_user_agent = \
                'python-ojsclient-%s' % ojsclient_version.version_string
        self.default_user_agent = default_user_agent
        if timeout:
            self.requests_args['timeout'] = timeout

    def _request(self, *arg, **kwarg):
        """Final wrapper before requests call, to be patched in tests"""
        return self.request_session.request(*arg, **kwarg)

    def request(self, method, full_path, data=None, headers=None):
        """Encode url and header, then call requests.request"""
        if headers is None:
            headers = {}
        else:
            headers = encode_meta_headers(headers)

        # set a default User-Agent header if it wasn't passed in
        if 'user-agent' not in headers:
            headers['user-agent'] = self.default_user_agent
        url = "%s://%s%s" % (
            self.parsed_url.scheme,
            self.parsed_url.netloc,
            full_path)
        self.resp = self._request(method, url, headers=headers, data=data,
                                  **self.requests_args)
        return self.resp

    def getresponse(self):
        """Adapt requests response to httplib interface"""
        self.resp.status = self.resp.status_code
        old_getheader = self.resp.raw.getheader

        def getheaders():
            return list(self.resp.headers.items())

        def getheader(k, v=None):
            return old_getheader(k.lower(), v)

        def releasing_read(*args, **kwargs):
            chunk = self.resp.raw.read(*args, **kwargs)
            if not chunk:
                # hand the connection back to urllib3's pool
                self.resp.close()
            return chunk

        self.resp.getheaders = getheaders
        self.resp.getheader = getheader
        self.resp.read = releasing_read

        return self.resp

    def close(self):
        if self.resp:
            self.resp.close()
        self.request_session.close()


def http_connection(*arg, **kwarg):
    """:returns: tuple of (parsed url, connection object)"""
    conn = HTTPConnection(*arg, **kwarg)
    return conn.parsed_url, conn


def resp_header_dict(resp):
    resp_headers = LowerKeyCaseInsensitiveDict()
    for header, value in resp.getheaders():
        header = parse_header_string(header)
        resp_headers[header] = parse_header_string(value)
    return resp_headers


def _request_path(storage_url, query_string=None):
    path = urlparse(storage_url).path
    if query_string:
        path += '?' + query_string.lstrip('?')
    return path


def _open(url, http_conn):
    if http_conn:
        parsed, conn = http_conn
        return parsed, conn, False
    parsed, conn = http_connection(url)
    return parsed, conn, True


def head_path(url, token, path, http_conn=None, headers=None):
    """
    Get the headers describing a container or an object.

    :param url: storage URL
    :param token: auth token
    :param path: ``container`` or ``container/object``
    :param http_conn: a tuple of (parsed url, HTTPConnection object),
                      (If None, it will create the conn object)
    :param headers: additional headers to include in the request
    :returns: a dict of the response headers, header names lower-cased
    :raises ClientException: HTTP HEAD request failed
    """
    storage_url = build_storage_url(url, path)
    parsed, conn, close_conn = _open(url, http_conn)
    method = 'HEAD'
    req_headers = {'X-Auth-Token': token}
    if headers:
        req_headers.update(headers)
    conn.request(method, _request_path(storage_url), '', req_headers)
    resp = conn.getresponse()
    body = resp.read()
    if close_conn:
        conn.close()
    http_log((storage_url, method,), {'headers': req_headers}, resp, body)

    classify_response(resp, body, 'HEAD failed')
    return resp_header_dict(resp)


def get_listing(url, token, path, marker=None, http_conn=None,
                full_listing=True):
    """
    Get the names directly under a container, or the containers of the
    account when ``path`` is ``/``.

    :param url: storage URL
    :param token: auth token
    :param path: container name, or ``/`` for the account
    :param marker: only names sorting after this one are returned
    :param http_conn: a tuple of (parsed url, HTTPConnection object),
                      (If None, it will create the conn object)
    :param full_listing: if True, keep asking for pages while the server
                         returns full ones
    :returns: a list of names, in the order the server sent them
    :raises ClientException: HTTP GET request failed
    """
    storage_url = build_storage_url(url, path)
    parsed, conn, close_conn = _open(url, http_conn)
    try:
        names = []
        while True:
            qs = 'marker=%s' % quote(marker) if marker else None
            method = 'GET'
            req_headers = {'X-Auth-Token': token}
            conn.request(method, _request_path(storage_url, qs), '',
                         req_headers)
            resp = conn.getresponse()
            body = resp.read()
            http_log((storage_url, method,), {'headers': req_headers},
                     resp, body)
            classify_response(resp, body, 'Listing GET failed')
            if resp.status == 204 or not body:
                break
            page = [line for line in body.decode('utf-8').splitlines()
                    if line]
            names.extend(page)
            if not full_listing or len(page) < LISTING_LIMIT:
                break
            marker = page[-1]
        return names
    finally:
        if close_conn:
            conn.close()


def get_object(url, token, path, http_conn=None, resp_chunk_size=None,
               headers=None):
    """
    Get an object

    :param url: storage URL
    :param token: auth token
    :param path: ``container/object``
    :param http_conn: a tuple of (parsed url, HTTPConnection object),
                      (If None, it will create the conn object and close it
                      after all content is read)
    :param resp_chunk_size: if defined, chunk size of data to read. NOTE: If
                            you specify a resp_chunk_size you must fully read
                            the object's contents before making another
                            request.
    :param headers: an optional dictionary with additional headers to include
                    in the request
    :returns: a tuple of (response headers, the object's contents) The response
              headers will be a dict and all header names will be lowercase.
    :raises ClientException: HTTP GET request failed
    """
    storage_url = build_storage_url(url, path)
    parsed, conn, close_conn = _open(url, http_conn)
    method = 'GET'
    headers = headers.copy() if headers else {}
    headers['X-Auth-Token'] = token
    conn.request(method, _request_path(storage_url), '', headers)
    resp = conn.getresponse()
    resp_headers = resp_header_dict(resp)

    if resp.status >= 400:
        body = resp.read()
        if close_conn:
            conn.close()
        http_log((storage_url, method,), {'headers': headers}, resp, body)
        classify_response(resp, body, 'Object GET failed')
    if resp_chunk_size:
        object_body = _ObjectBody(resp, resp_chunk_size,
                                  conn_to_close=conn if close_conn else None)
    else:
        object_body = resp.read()
        if close_conn:
            conn.close()
    http_log((storage_url, method,), {'headers': headers}, resp, None)

    return resp_headers, object_body


def put_object(url, token, path, contents, content_type=None,
               content_length=None, headers=None, http_conn=None):
    """
    Put an object

    :param url: storage URL
    :param token: auth token
    :param path: ``container/object``
    :param contents: a string, a file-like object or an iterable
    :param content_type: value to send as content-type header
    :param content_length: value to send as content-length header
    :param headers: additional headers to include in the request
    :param http_conn: a tuple of (parsed url, HTTPConnection object),
                      (If None, it will create the conn object)
    :returns: etag
    :raises ClientException: HTTP PUT request failed
    """
    storage_url = build_storage_url(url, path)
    parsed, conn, close_conn = _open(url, http_conn)
    method = 'PUT'
    req_headers = {'X-Auth-Token': token}
    if headers:
        req_headers.update(headers)
    if content_type is not None:
        req_headers['Content-Type'] = content_type
    if content_length is not None:
        req_headers['Content-Length'] = str(content_length)
    conn.request(method, _request_path(storage_url), contents, req_headers)
    resp = conn.getresponse()
    body = resp.read()
    if close_conn:
        conn.close()
    http_log((storage_url, method,), {'headers': req_headers}, resp, body)

    classify_response(resp, body, 'Object PUT failed')
    etag = resp.getheader('etag', '')
    return etag.strip('"')


def put_container(url, token, path, headers=None, http_conn=None):
    """
    Create a container

    :param url: storage URL
    :param token: auth token
    :param path: container name to create
    :param headers: additional headers to include in the request
    :param http_conn: a tuple of (parsed url, HTTPConnection object),
                      (If None, it will create the conn object)
    :raises ClientException: HTTP PUT request failed
    """
    storage_url = build_storage_url(url, path)
    parsed, conn, close_conn = _open(url, http_conn)
    method = 'PUT'
    req_headers = {'X-Auth-Token': token}
    if headers:
        req_headers.update(headers)
    if 'content-length' not in (k.lower() for k in req_headers):
        req_headers['Content-Length'] = '0'
    conn.request(method, _request_path(storage_url), '', req_headers)
    resp = conn.getresponse()
    body = resp.read()
    if close_conn:
        conn.close()
    http_log((storage_url, method,), {'headers': req_headers}, resp, body)

    classify_response(resp, body, 'Container PUT failed')


def post_path(url, token, path, headers, http_conn=None):
    """
    Update the metadata of a container or an object.

    :param url: storage URL
    :param token: auth token
    :param path: ``container`` or ``container/object``
    :param headers: metadata and ACL headers to send
    :param http_conn: a tuple of (parsed url, HTTPConnection object),
                      (If None, it will create the conn object)
    :raises ClientException: HTTP POST request failed
    """
    storage_url = build_storage_url(url, path)
    parsed, conn, close_conn = _open(url, http_conn)
    method = 'POST'
    req_headers = {'X-Auth-Token': token}
    if headers:
        req_headers.update(headers)
    if 'content-length' not in (k.lower() for k in req_headers):
        req_headers['Content-Length'] = '0'
    conn.request(method, _request_path(storage_url), '', req_headers)
    resp = conn.getresponse()
    body = resp.read()
    if close_conn:
        conn.close()
    http_log((storage_url, method,), {'headers': req_headers}, resp, body)

    classify_response(resp, body, 'POST failed')


def delete_path(url, token, path, http_conn=None):
    """
    Delete a container or an object.

    Deleting a container that still holds objects fails with
    :class:`~ojsclient.exceptions.Conflict`.

    :param url: storage URL
    :param token: auth token
    :param path: ``container`` or ``container/object``
    :param http_conn: a tuple of (parsed url, HTTPConnection object),
                      (If None, it will create the conn object)
    :raises ClientException: HTTP DELETE request failed
    """
    storage_url = build_storage_url(url, path)
    parsed, conn, close_conn = _open(url, http_conn)
    method = 'DELETE'
    req_headers = {'X-Auth-Token': token}
    conn.request(method, _request_path(storage_url), '', req_headers)
    resp = conn.getresponse()
    body = resp.read()
    if close_conn:
        conn.close()
    http_log((storage_url, method,), {'headers': req_headers}, resp, body)

    classify_response(resp, body, 'DELETE failed')
