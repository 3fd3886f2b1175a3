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

from typing import Optional

from zksend.crypto import CryptoInterface
from zksend.Errors import ErrorKind, TransferError
from zksend.Kernel import getLogger
from zksend.Utils import encodeBase64URL

logger = getLogger(__name__)

SECRET_LENGTH = 16
IV_LENGTH = 12

AUTH_KEY_LENGTH = 64
META_KEY_LENGTH = 16
FILE_KEY_LENGTH = 16

# HKDF info labels, one per derived key
AUTH_KEY_INFO = b"authentication"
META_KEY_INFO = b"metadata"
FILE_KEY_INFO = b"file-content"


class KeySet:
    """All key material of one file transfer, derived from a single shared secret

    The uploader generates the secret (``owning``), the downloader recovers it
    from the fragment of a share URL. Sub-keys are derived with HKDF-SHA256,
    each under its own info label, so the same secret and iv always yield the
    same keys.
    """

    def __init__(self, secret: bytes, iv: Optional[bytes] = None, owning: bool = False, crypto=None):
        if not isinstance(secret, (bytes, bytearray)) or len(secret) != SECRET_LENGTH:
            raise ValueError(f"Secret must be {SECRET_LENGTH} bytes")
        if iv is not None and len(iv) != IV_LENGTH:
            raise ValueError(f"IV must be {IV_LENGTH} bytes")

        self._secret = bytes(secret)
        self._iv = bytes(iv) if iv is not None else None
        self.owning = owning

        crypto = crypto or CryptoInterface()
        try:
            self._authKey = crypto.deriveKey(self._secret, length=AUTH_KEY_LENGTH, info=AUTH_KEY_INFO)
            self._metaKey = crypto.deriveKey(self._secret, length=META_KEY_LENGTH, info=META_KEY_INFO)
            self._fileKey = crypto.deriveKey(self._secret, length=FILE_KEY_LENGTH, info=FILE_KEY_INFO)
        except ValueError as e:
            # Key sizes are constants, a rejection means the backend does not match this build
            raise TransferError(ErrorKind.KEY_DERIVATION, cause=e) from e

    @classmethod
    def generate(cls, owning: bool = True, crypto=None) -> 'KeySet':
        """Create a key set from a fresh random secret and iv"""
        crypto = crypto or CryptoInterface()
        keySet = cls(
            crypto.randomBytes(SECRET_LENGTH), crypto.randomBytes(IV_LENGTH), owning=owning, crypto=crypto
        )
        logger.debug(f"Generated key set with backend {crypto.getBackendName()}")
        return keySet

    @classmethod
    def fromSecret(cls, secret: bytes, iv: Optional[bytes] = None, crypto=None) -> 'KeySet':
        """Re-derive a key set from externally supplied material"""
        return cls(secret, iv, owning=False, crypto=crypto)

    @property
    def secret(self) -> bytes:
        return self._secret

    @property
    def iv(self) -> Optional[bytes]:
        return self._iv

    @property
    def authKey(self) -> bytes:
        return self._authKey

    @property
    def metaKey(self) -> bytes:
        return self._metaKey

    @property
    def fileKey(self) -> bytes:
        return self._fileKey

    @property
    def authKeyEncoded(self) -> str:
        """Auth key encoded for use as an HTTP credential"""
        return encodeBase64URL(self._authKey)

    def __repr__(self):
        # Never expose key material
        return f"<KeySet owning={self.owning} iv={'set' if self._iv else 'unset'}>"
