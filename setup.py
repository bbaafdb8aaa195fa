#!/usr/bin/python
# -*- encoding: utf-8 -*-
# Copyright (c) 2010 OpenStack, LLC.
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

import setuptools

name = 'python-ojsclient'

requires = [
    'requests>=2.4.0',
]

test_requires = [
    'pytest',
]

setuptools.setup(
    name=name,
    version='0.2.0',
    description='Client Library and command-line tool for ConoHa Object '
                'Storage',
    license='Apache License (2.0)',
    packages=setuptools.find_packages(exclude=['test', 'test.*']),
    install_requires=requires,
    extras_require={
        'test': test_requires,
    },
    python_requires='>=3.7',
    classifiers=[
        'Development Status :: 4 - Beta',
        'Environment :: Console',
        'Intended Audience :: Developers',
        'Intended Audience :: Information Technology',
        'License :: OSI Approved :: Apache Software License',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
    ],
    entry_points={
        'console_scripts': [
            'conoha-ojs = ojsclient.shell:main',
        ],
    },
)
