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
Pluggable crypto backends. zksend needs only randomness, HKDF and AES-GCM;
CryptoInterface picks the first importable backend from BACKENDS.
"""

from abc import ABC, abstractmethod

from zksend.Kernel import classForName, getLogger

logger = getLogger(__name__)


class InvalidTagError(Exception):
    """AES-GCM authentication tag did not verify"""


class CryptoBackend(ABC):

    @abstractmethod
    def getName(self):
        ...

    @abstractmethod
    def randomBytes(self, length):
        """Cryptographically secure random bytes"""

    @abstractmethod
    def deriveKey(self, keyMaterial, length=32, info=b'', salt=None):
        """HKDF-SHA256 output of the given length"""

    @abstractmethod
    def createAESGCM(self, key):
        """Cipher object reusable across encryptAESGCM/decryptAESGCM calls"""

    @abstractmethod
    def encryptAESGCM(self, keyOrCipher, plaintext, nonce=None, aad=None):
        """Returns (nonce, ciphertext || tag), a random nonce is drawn when none is given"""

    @abstractmethod
    def decryptAESGCM(self, keyOrCipher, nonce, ciphertextWithTag, aad=None):
        """Returns the plaintext, raises InvalidTagError when authentication fails"""


class CryptoInterface:
    """Entry point used by KeySet, Metadata and Stream"""

    BACKENDS = ['cryptography']

    def __init__(self, preferredBackend=None):
        self.backend = self._loadBackend(preferredBackend)

    def _loadBackend(self, preferredBackend=None):
        candidates = sorted(self.BACKENDS, key=lambda name: name != preferredBackend)

        for name in candidates:
            moduleName = name[0].upper() + name[1:]
            try:
                return classForName(f'zksend.crypto.{moduleName}.{moduleName}Backend')()
            except ImportError as e:
                logger.debug(f"Crypto backend {name} unavailable: {e}")

        raise RuntimeError("No crypto backend available, install 'cryptography'")

    def getBackendName(self):
        return self.backend.getName()

    def randomBytes(self, length):
        return self.backend.randomBytes(length)

    def deriveKey(self, keyMaterial, length=32, info=b'', salt=None):
        return self.backend.deriveKey(keyMaterial, length=length, info=info, salt=salt)

    def createAESGCM(self, key):
        return self.backend.createAESGCM(key)

    def encryptAESGCM(self, keyOrCipher, plaintext, nonce=None, aad=None):
        return self.backend.encryptAESGCM(keyOrCipher, plaintext, nonce, aad)

    def decryptAESGCM(self, keyOrCipher, nonce, ciphertextWithTag, aad=None):
        return self.backend.decryptAESGCM(keyOrCipher, nonce, ciphertextWithTag, aad)
