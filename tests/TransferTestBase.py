#!/usr/bin/env python
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0
#
# zksend - Zero-knowledge file sharing client
# Copyright (C) 2025-2026 zksend contributors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""
Shared fixtures for transfer tests: an in-memory Send server that speaks the
upload/download API through a requests-like session interface.
"""

import json
import os
import shutil
import tempfile
import unittest

from zksend.Progress import ProgressReporter

TEST_HOST = 'https://send.example.com/'


def readAll(body, blockSize=8191):
    """Pull a request body the way an HTTP client does, in fixed-size blocks"""
    parts = []
    while True:
        data = body.read(blockSize)
        if not data:
            break
        parts.append(data)
    return b''.join(parts)


def parseMultipart(body: bytes, contentType: str) -> bytes:
    """Return the payload of the single part of a multipart/form-data body"""
    boundary = contentType.split('boundary=', 1)[1].encode('ascii')
    head, separator, rest = body.partition(b'\r\n\r\n')
    assert head.startswith(b'--' + boundary), "body must start with the boundary"
    assert separator, "part header must end with an empty line"

    tail = b'\r\n--' + boundary + b'--\r\n'
    assert rest.endswith(tail), "body must end with the closing boundary"
    return rest[:-len(tail)]


class FakeResponse:

    def __init__(self, statusCode=200, text='', content=None, headers=None, reason=None):
        self.status_code = statusCode
        self.content = content if content is not None else text.encode('utf-8')
        self.text = text
        self.headers = headers or {}
        self.reason = reason
        self.closed = False

    def json(self):
        return json.loads(self.text)

    def iter_content(self, chunk_size=1):
        for offset in range(0, len(self.content), chunk_size):
            yield self.content[offset:offset + chunk_size]

    def close(self):
        self.closed = True


class FakeSendServer:
    """In-memory Send server, used in place of a requests.Session"""

    def __init__(self, host=TEST_HOST, checkAuth=True):
        self.host = host
        self.checkAuth = checkAuth
        self.files = {}
        self.requests = []
        self.failWith = None # (statusCode, text) returned for the next upload

    def post(self, url, data=None, headers=None, timeout=None):
        self.requests.append(('POST', url, dict(headers or {})))
        body = readAll(data)

        if self.failWith:
            statusCode, text = self.failWith
            return FakeResponse(statusCode, text=text)

        assert url == self.host + 'api/upload'
        assert int(headers['Content-Length']) == len(body)

        fileId = f'{len(self.files) + 1:010x}'
        self.files[fileId] = {
            'data': parseMultipart(body, headers['Content-Type']),
            'metadata': headers['X-File-Metadata'],
            'auth': headers['Authorization'],
        }
        response = {'id': fileId, 'url': f'{self.host}download/{fileId}/', 'owner': f'owner-{fileId}'}
        return FakeResponse(200, text=json.dumps(response))

    def get(self, url, headers=None, stream=False, timeout=None):
        self.requests.append(('GET', url, dict(headers or {})))

        prefix = self.host + 'api/download/'
        entry = self.files.get(url[len(prefix):]) if url.startswith(prefix) else None
        if entry is None:
            return FakeResponse(404, text='File not found')

        if self.checkAuth and headers.get('Authorization') != entry['auth']:
            return FakeResponse(401, text='Unauthorized')

        responseHeaders = {'Content-Length': str(len(entry['data']))}
        if entry['metadata'] is not None:
            responseHeaders['X-File-Metadata'] = entry['metadata']
        return FakeResponse(200, content=entry['data'], headers=responseHeaders)


class RecordingReporter(ProgressReporter):

    def __init__(self):
        self.events = []

    def start(self, total):
        self.events.append(('start', total))

    def update(self, transferred):
        self.events.append(('update', transferred))

    def finish(self):
        self.events.append(('finish', None))

    def updates(self):
        return [value for event, value in self.events if event == 'update']

    def count(self, name):
        return sum(1 for event, _ in self.events if event == name)


class TransferTestBase(unittest.TestCase):

    def setUp(self):
        self.tempDir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tempDir, ignore_errors=True)

    def createFile(self, name, content: bytes):
        path = os.path.join(self.tempDir, name)
        with open(path, 'wb') as f:
            f.write(content)
        return path

    def createRawNameFile(self, rawName: bytes, content: bytes):
        """Create a file whose name is given as raw bytes, returned as a str path"""
        if os.name == 'nt':
            self.skipTest("file names are not raw bytes on Windows")

        path = os.path.join(os.fsencode(self.tempDir), rawName)
        try:
            with open(path, 'wb') as f:
                f.write(content)
        except OSError as e:
            self.skipTest(f"file system rejects non UTF-8 names: {e}")

        path = os.fsdecode(path)
        try:
            path.encode('utf-8')
        except UnicodeEncodeError:
            return path
        self.skipTest("file system encoding decodes the name cleanly")
