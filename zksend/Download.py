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

import os

from dataclasses import dataclass

import requests

from zksend.Errors import ErrorKind, TransferError
from zksend.FileHandle import ShareURL, apiURL
from zksend.Kernel import getLogger
from zksend.KeySet import KeySet
from zksend.Metadata import (
    DEFAULT_FILENAME, METADATA_HEADER, Metadata, decryptMetadata, decodeMetadataHeader
)
from zksend.Progress import ProgressTracker
from zksend.Settings import DOWNLOAD_BLOCK_SIZE, REQUEST_TIMEOUT, USER_AGENT
from zksend.Stream import StreamDecryptor
from zksend.Upload import authorizationHeader, responseMessage

logger = getLogger(__name__)

DOWNLOAD_ENDPOINT = 'api/download/'
PARTIAL_SUFFIX = '.part'


@dataclass(frozen=True)
class DownloadResult:
    path: str
    metadata: Metadata
    size: int


def safeFilename(name: str) -> str:
    """Reduce a remote file name to a plain basename without control characters"""
    name = ''.join(char for char in name if char.isprintable())
    name = os.path.basename(name.replace('\\', '/')).strip()
    if name in ('', '.', '..'):
        return DEFAULT_FILENAME
    return name


class Download:
    """Download a file from a share URL and decrypt it to local storage"""

    def __init__(self, shareURL: str, output=None, timeout=REQUEST_TIMEOUT, blockSize=DOWNLOAD_BLOCK_SIZE):
        self.shareURL = shareURL
        self.output = output
        self.timeout = timeout
        self.blockSize = blockSize

    def invoke(self, session: requests.Session = None, tracker: ProgressTracker = None) -> DownloadResult:
        """Run the download, returns where the plaintext was written

        Raises:
            TransferError: On any failure, tagged with the failing stage. Link
                errors (isLinkError) mean the share URL is wrong or malformed.
        """
        session = session or requests.Session()
        tracker = tracker or ProgressTracker()

        # A malformed link fails before any network activity
        share = ShareURL.parse(self.shareURL)
        keySet = KeySet.fromSecret(share.secret)

        response = self.executeRequest(session, share, keySet)
        try:
            metadata = self.decryptMetadata(response, keySet)

            # Re-derive now that the iv is known
            keySet = KeySet.fromSecret(share.secret, metadata.iv)
            path = self.resolvePath(metadata)

            try:
                tracker.start(self.contentLength(response))
                size = self.writeDecrypted(response, keySet, path, tracker)
            finally:
                tracker.finish()
        finally:
            response.close()

        logger.info(f"Downloaded file {share.id} ({size} bytes)")
        return DownloadResult(path=path, metadata=metadata, size=size)

    def executeRequest(self, session, share: ShareURL, keySet: KeySet):
        url = apiURL(share.host, DOWNLOAD_ENDPOINT + share.id)
        headers = {
            'Authorization': authorizationHeader(keySet),
            'Accept-Encoding': 'identity', # progress counts raw ciphertext bytes
            'User-Agent': USER_AGENT,
        }

        try:
            response = session.get(url, headers=headers, stream=True, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransferError(ErrorKind.REQUEST, cause=e) from e

        if not 200 <= response.status_code < 300:
            try:
                raise TransferError(
                    ErrorKind.REQUEST_STATUS, statusCode=response.status_code, serverMessage=responseMessage(response)
                )
            finally:
                response.close()

        return response

    def decryptMetadata(self, response, keySet: KeySet) -> Metadata:
        headerValue = response.headers.get(METADATA_HEADER)
        if not headerValue:
            raise TransferError(ErrorKind.MISSING_METADATA)

        return decryptMetadata(decodeMetadataHeader(headerValue), keySet.metaKey)

    @staticmethod
    def contentLength(response):
        value = response.headers.get('Content-Length')
        try:
            return int(value) if value is not None else None
        except ValueError:
            return None

    def resolvePath(self, metadata: Metadata) -> str:
        """Destination file: an explicit path, a directory joined with the remote name, or the current directory"""
        name = safeFilename(metadata.name)
        if self.output is None:
            return os.path.abspath(name)

        output = os.fspath(self.output)
        if os.path.isdir(output):
            return os.path.join(output, name)
        return output

    def writeDecrypted(self, response, keySet: KeySet, path: str, tracker: ProgressTracker) -> int:
        """Decrypt the body into a partial file, moved into place only once fully authenticated"""
        decryptor = StreamDecryptor(keySet.fileKey, keySet.iv)
        partialPath = path + PARTIAL_SUFFIX

        try:
            f = open(partialPath, 'wb')
        except (OSError, ValueError) as e:
            raise TransferError(ErrorKind.FILE_WRITE, cause=e, detail=str(e)) from e

        completed = False
        try:
            with f:
                for data in self._iterBody(response):
                    tracker.advance(len(data))
                    self._write(f, decryptor.processChunk(data))
                self._write(f, decryptor.flush())

            try:
                os.replace(partialPath, path)
            except (OSError, ValueError) as e:
                raise TransferError(ErrorKind.FILE_WRITE, cause=e, detail=str(e)) from e
            completed = True
        finally:
            if not completed:
                self._discard(partialPath)

        return decryptor.produced

    def _iterBody(self, response):
        try:
            yield from response.iter_content(chunk_size=self.blockSize)
        except requests.RequestException as e:
            raise TransferError(ErrorKind.REQUEST, cause=e) from e

    @staticmethod
    def _write(f, data: bytes):
        if not data:
            return
        try:
            f.write(data)
        except OSError as e:
            raise TransferError(ErrorKind.FILE_WRITE, cause=e, detail=str(e)) from e

    @staticmethod
    def _discard(partialPath: str):
        try:
            os.remove(partialPath)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to remove incomplete download {partialPath}: {e}")
