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
"""Miscellaneous utility functions for use with ConoHa Object Storage."""
import mimetypes
import os

TRUE_VALUES = set(('true', '1', 'yes', 'on', 't', 'y'))
DEFAULT_CONTENT_TYPE = 'application/octet-stream'
TIMEOUT_SUFFIXES = (
    ('s', 1),
    ('m', 60),
    ('h', 60 * 60),
    ('d', 24 * 60 * 60),
)


def config_true_value(value):
    """
    Returns True if the value is either True or a string in TRUE_VALUES.
    Returns False otherwise.
    """
    return value is True or \
        (isinstance(value, str) and value.lower() in TRUE_VALUES)


def prt_bytes(num_bytes, human_flag):
    """
    convert a number > 1024 to printable format, either in 4 char -h format as
    with ls -lh or return as 12 char right justified string
    """

    if not human_flag:
        return '%12s' % num_bytes

    num = float(num_bytes)
    suffixes = [None] + list('KMGTPEZY')
    for suffix in suffixes[:-1]:
        if num <= 1023:
            break
        num /= 1024.0
    else:
        suffix = suffixes[-1]

    if not suffix:  # num_bytes must be < 1024
        return '%4s' % num_bytes
    elif num >= 10:
        return '%3d%s' % (num, suffix)
    else:
        return '%.1f%s' % (num, suffix)


def parse_timeout(value):
    """
    Parse a timeout given as seconds, optionally with an s/m/h/d suffix.

    :raises ValueError: the value is not a positive number
    """
    value = str(value).strip().lower()
    multiplier = 1
    for suffix, factor in TIMEOUT_SUFFIXES:
        if value.endswith(suffix):
            value = value[:-len(suffix)]
            multiplier = factor
            break
    timeout = float(value) * multiplier
    if timeout <= 0:
        raise ValueError('timeout must be a positive number')
    return timeout


def split_meta_items(items):
    """
    Turn ``Key:Value`` strings into a dict.

    A blank value is kept as ``''``; it asks for the key to be removed.

    :raises ValueError: an item has no ``:``
    """
    meta = {}
    for item in items or []:
        if ':' not in item:
            raise ValueError(
                '"%s" is invalid metadata.\n'
                "Example: 'Color:Blue' or 'Size:Large'" % item)
        key, value = item.split(':', 1)
        key = key.strip()
        if not key:
            raise ValueError('"%s" is invalid metadata.' % item)
        meta[key] = value.strip()
    return meta


def normalize_object_name(path):
    """
    Map a local file path to the object name it is uploaded as.

    :raises ValueError: the path climbs above its starting directory
    """
    name = os.path.normpath(path).replace(os.sep, '/')
    while name.startswith('./'):
        name = name[2:]
    name = name.lstrip('/')
    if '..' in name.split('/'):
        raise ValueError('Cannot name an object after "%s"' % path)
    return name


def guess_content_type(filename, default=DEFAULT_CONTENT_TYPE):
    content_type, _encoding = mimetypes.guess_type(filename)
    return content_type or default
