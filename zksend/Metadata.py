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

import json
import mimetypes
import os

from dataclasses import dataclass

from zksend.crypto import CryptoInterface, InvalidTagError
from zksend.Errors import ErrorKind, TransferError
from zksend.Kernel import getLogger
from zksend.KeySet import IV_LENGTH
from zksend.Utils import encodeBase64URL, decodeBase64URL

logger = getLogger(__name__)

DEFAULT_FILENAME = 'file'
DEFAULT_MIME_TYPE = 'application/octet-stream'

METADATA_HEADER = 'X-File-Metadata'

# meta_key encrypts exactly one blob, so a constant nonce never repeats under it
METADATA_NONCE = bytes(12)


@dataclass(frozen=True)
class Metadata:
    """Descriptor of an uploaded file, encrypted as one opaque blob"""
    iv: bytes
    name: str
    mimeType: str

    def toJSON(self) -> str:
        return json.dumps(
            {
                'iv': encodeBase64URL(self.iv),
                'name': self.name,
                'type': self.mimeType
            },
            separators=(',', ':'),
            ensure_ascii=False
        )

    @classmethod
    def fromJSON(cls, text) -> 'Metadata':
        """Parse the wire form

        Raises:
            ValueError: If the text is not a valid metadata document
        """
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("Metadata must be a JSON object")

        iv, name, mimeType = data.get('iv'), data.get('name'), data.get('type')
        if not isinstance(iv, str) or not isinstance(name, str) or not isinstance(mimeType, str):
            raise ValueError("Metadata requires string fields 'iv', 'name' and 'type'")

        ivBytes = decodeBase64URL(iv)
        if len(ivBytes) != IV_LENGTH:
            raise ValueError(f"Metadata iv must be {IV_LENGTH} bytes")

        return cls(iv=ivBytes, name=name, mimeType=mimeType)


@dataclass(frozen=True)
class FileData:
    """Local file properties shown to the downloader: display name and mime type"""
    path: str
    name: str
    mimeType: str
    size: int

    @classmethod
    def fromPath(cls, path) -> 'FileData':
        """Describe the regular file at path

        Raises:
            TransferError: NOT_A_FILE if the path is not an existing regular file
        """
        path = os.fsdecode(path)
        if not os.path.isfile(path):
            raise TransferError(ErrorKind.NOT_A_FILE, detail=path)

        baseName = os.path.basename(path)
        mimeType, _ = mimetypes.guess_type(baseName, strict=False)

        # Names that are not valid UTF-8 come back with surrogate escapes and cannot be sent
        try:
            baseName.encode('utf-8')
        except UnicodeEncodeError:
            logger.debug("File name is not valid UTF-8, using the placeholder name")
            baseName = ''
        name = baseName or DEFAULT_FILENAME

        return cls(path=path, name=name, mimeType=mimeType or DEFAULT_MIME_TYPE, size=os.path.getsize(path))


def encryptMetadata(metadata: Metadata, metaKey: bytes, crypto=None) -> bytes:
    """Encrypt metadata with its single-use key, returns ciphertext with the tag appended"""
    crypto = crypto or CryptoInterface()
    try:
        _, blob = crypto.encryptAESGCM(metaKey, metadata.toJSON(), METADATA_NONCE)
    except (ValueError, TypeError) as e:
        raise TransferError(ErrorKind.META_ENCRYPT, cause=e) from e
    return blob


def decryptMetadata(blob: bytes, metaKey: bytes, crypto=None) -> Metadata:
    """Decrypt and parse a metadata blob

    Raises:
        TransferError: META_DECRYPT when the tag does not verify (tampered or wrong key),
            META_PARSE when the plaintext is not valid metadata
    """
    crypto = crypto or CryptoInterface()
    try:
        plaintext = crypto.decryptAESGCM(metaKey, METADATA_NONCE, blob)
    except InvalidTagError as e:
        raise TransferError(ErrorKind.META_DECRYPT, cause=e) from e

    try:
        return Metadata.fromJSON(plaintext.decode('utf-8'))
    except (UnicodeDecodeError, ValueError) as e:
        raise TransferError(ErrorKind.META_PARSE, cause=e) from e


def encodeMetadataHeader(blob: bytes) -> str:
    """Encode a metadata blob into a header-safe value"""
    return encodeBase64URL(blob)


def decodeMetadataHeader(value: str) -> bytes:
    try:
        return decodeBase64URL(value)
    except ValueError as e:
        raise TransferError(ErrorKind.META_PARSE, cause=e) from e
