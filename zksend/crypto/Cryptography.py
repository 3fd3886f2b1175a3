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

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from zksend.Kernel import getLogger
from zksend.crypto import CryptoBackend, InvalidTagError

logger = getLogger(__name__)

GCM_NONCE_LENGTH = 12


class CryptographyBackend(CryptoBackend):
    """pyca/cryptography backend: HKDF-SHA256 and AES-GCM"""

    def getName(self):
        return "cryptography"

    def randomBytes(self, length):
        return os.urandom(length)

    def deriveKey(self, keyMaterial, length=32, info=b'', salt=None):
        """Derive length bytes from keyMaterial with HKDF-SHA256

        Raises:
            ValueError: If HKDF cannot produce the requested length
        """
        if isinstance(keyMaterial, str):
            keyMaterial = keyMaterial.encode('utf-8')

        return HKDF(algorithm=hashes.SHA256(), length=length, salt=salt, info=info).derive(keyMaterial)

    def createAESGCM(self, key):
        """Raises ValueError for keys that are not 128, 192 or 256 bits"""
        return AESGCM(key)

    def _cipher(self, keyOrCipher):
        return keyOrCipher if isinstance(keyOrCipher, AESGCM) else AESGCM(keyOrCipher)

    def encryptAESGCM(self, keyOrCipher, plaintext, nonce=None, aad=None):
        if isinstance(plaintext, str):
            plaintext = plaintext.encode('utf-8')

        if nonce is None:
            nonce = os.urandom(GCM_NONCE_LENGTH)
        elif len(nonce) != GCM_NONCE_LENGTH:
            raise ValueError(f"AES-GCM nonce must be {GCM_NONCE_LENGTH} bytes")

        return (nonce, self._cipher(keyOrCipher).encrypt(nonce, plaintext, aad))

    def decryptAESGCM(self, keyOrCipher, nonce, ciphertextWithTag, aad=None):
        try:
            return self._cipher(keyOrCipher).decrypt(nonce, ciphertextWithTag, aad)
        except InvalidTag as e:
            raise InvalidTagError("AES-GCM tag verification failed") from e
