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

import uuid

from dataclasses import dataclass

import requests

from zksend.Errors import ErrorKind, TransferError
from zksend.FileHandle import FileHandle, apiURL
from zksend.Kernel import getLogger
from zksend.KeySet import KeySet
from zksend.Metadata import (
    METADATA_HEADER, FileData, Metadata, encryptMetadata, encodeMetadataHeader
)
from zksend.Progress import ProgressReader, ProgressTracker
from zksend.Settings import REQUEST_TIMEOUT, USER_AGENT
from zksend.Stream import EncryptedFileReader

logger = getLogger(__name__)

UPLOAD_ENDPOINT = 'api/upload'
UPLOAD_FIELD_NAME = 'data'
UPLOAD_CONTENT_TYPE = 'application/octet-stream'
AUTH_SCHEME = 'send-v1'


def authorizationHeader(keySet: KeySet) -> str:
    return f"{AUTH_SCHEME} {keySet.authKeyEncoded}"


def responseMessage(response) -> str:
    """Server-supplied error message, verbatim, falling back to the reason phrase"""
    text = response.text
    return text if text else (response.reason or '')


class MultipartBody:
    """A single-part multipart/form-data body streamed from a reader of known length"""

    def __init__(self, reader, fieldName=UPLOAD_FIELD_NAME, contentType=UPLOAD_CONTENT_TYPE, boundary=None):
        self.reader = reader
        self.boundary = boundary or uuid.uuid4().hex
        self.head = (
            f'--{self.boundary}\r\n'
            f'Content-Disposition: form-data; name="{fieldName}"\r\n'
            f'Content-Type: {contentType}\r\n'
            f'\r\n'
        ).encode('ascii')
        self.tail = f'\r\n--{self.boundary}--\r\n'.encode('ascii')
        self.len = len(self.head) + len(reader) + len(self.tail)

        self._parts = [self.head, None, self.tail] # None marks the reader
        self._pending = b''

    @property
    def contentType(self) -> str:
        return f'multipart/form-data; boundary={self.boundary}'

    def __len__(self):
        return self.len

    def read(self, size=-1) -> bytes:
        if size is None or size < 0:
            size = self.len

        chunks = []
        remaining = size
        while remaining > 0 and (self._pending or self._parts):
            if not self._pending:
                part = self._parts[0]
                if part is None:
                    data = self.reader.read(remaining)
                    if data:
                        chunks.append(data)
                        remaining -= len(data)
                        continue
                    self._parts.pop(0)
                    continue
                self._pending = self._parts.pop(0)

            data, self._pending = self._pending[:remaining], self._pending[remaining:]
            chunks.append(data)
            remaining -= len(data)

        return b''.join(chunks)

    def close(self):
        self.reader.close()


@dataclass(frozen=True)
class UploadResponse:
    """The server response to an upload: file id, download URL (without secret) and owner token"""
    id: str
    url: str
    owner: str

    @classmethod
    def fromJSON(cls, data) -> 'UploadResponse':
        if not isinstance(data, dict):
            raise ValueError("Upload response must be a JSON object")

        values = {key: data.get(key) for key in ('id', 'url', 'owner')}
        missing = [key for key, value in values.items() if not isinstance(value, str)]
        if missing:
            raise ValueError(f"Upload response lacks string fields: {', '.join(missing)}")

        return cls(**values)

    def toFile(self, host: str, keySet: KeySet) -> FileHandle:
        try:
            return FileHandle.now(self.id, host, self.url, keySet.secret, self.owner)
        except ValueError as e:
            raise TransferError(ErrorKind.PARSE_URL, cause=e, detail=self.url) from e


class Upload:
    """Encrypt a local file and upload it to a Send server"""

    def __init__(self, host: str, path, timeout=REQUEST_TIMEOUT):
        self.host = host if host.endswith('/') else host + '/'
        self.path = path
        self.timeout = timeout

    @property
    def url(self) -> str:
        return apiURL(self.host, UPLOAD_ENDPOINT)

    def invoke(self, session: requests.Session = None, tracker: ProgressTracker = None) -> FileHandle:
        """Run the upload, returns the handle of the uploaded file

        Raises:
            TransferError: On any failure, tagged with the failing stage
        """
        session = session or requests.Session()
        tracker = tracker or ProgressTracker()

        # Fail before any key material or network activity
        fileData = FileData.fromPath(self.path)
        keySet = KeySet.generate(owning=True)

        metadata = self.createMetadata(keySet, fileData)
        reader = self.createReader(keySet, tracker)
        body = MultipartBody(reader)

        try:
            headers = self.createHeaders(keySet, metadata, body)

            logger.debug(f"Uploading {fileData.size} bytes as {len(reader)} encrypted bytes to {self.url}")

            try:
                tracker.start(len(reader))
                return self.executeRequest(session, headers, body, keySet)
            finally:
                tracker.finish()
        finally:
            body.close()

    def createMetadata(self, keySet: KeySet, fileData: FileData) -> bytes:
        """Build and encrypt the metadata blob"""
        metadata = Metadata(iv=keySet.iv, name=fileData.name, mimeType=fileData.mimeType)
        return encryptMetadata(metadata, keySet.metaKey)

    def createReader(self, keySet: KeySet, tracker: ProgressTracker) -> ProgressReader:
        """Open the file as an encrypted stream observed by the tracker"""
        reader = EncryptedFileReader.open(self.path, keySet.fileKey, keySet.iv)
        try:
            return ProgressReader(reader, tracker)
        except TransferError:
            reader.close()
            raise

    def createHeaders(self, keySet: KeySet, metadata: bytes, body: MultipartBody) -> dict:
        return {
            'Authorization': authorizationHeader(keySet),
            METADATA_HEADER: encodeMetadataHeader(metadata),
            'Content-Type': body.contentType,
            'Content-Length': str(len(body)),
            'User-Agent': USER_AGENT,
        }

    def executeRequest(self, session, headers: dict, body: MultipartBody, keySet: KeySet) -> FileHandle:
        try:
            response = session.post(self.url, data=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransferError(ErrorKind.REQUEST, cause=e) from e

        if not 200 <= response.status_code < 300:
            raise TransferError(
                ErrorKind.REQUEST_STATUS, statusCode=response.status_code, serverMessage=responseMessage(response)
            )

        try:
            uploadResponse = UploadResponse.fromJSON(response.json())
        except ValueError as e:
            raise TransferError(ErrorKind.DECODE, cause=e) from e

        logger.info(f"Uploaded file {uploadResponse.id}")
        return uploadResponse.toFile(self.host, keySet)
