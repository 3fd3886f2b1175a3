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
Chunked authenticated encryption of file content.

Plaintext is cut into CHUNK_SIZE chunks, each sealed with AES-GCM under the
file key. The nonce of chunk i is ``iv XOR i`` and the additional data marks
whether the chunk is the final one, so a stream cut short at a chunk boundary
fails authentication instead of decrypting to a shorter file. Every stream has
at least one chunk, an empty file is one empty final chunk.

Wire layout::

    chunk_0 = AES-GCM(fileKey, iv ^ 0, plaintext[0:CHUNK_SIZE], aad=0x00) || tag
    ...
    chunk_n = AES-GCM(fileKey, iv ^ n, plaintext[n*CHUNK_SIZE:], aad=0x01) || tag
"""

import os

from typing import Iterable, Iterator

from zksend.crypto import CryptoInterface, InvalidTagError
from zksend.Errors import ErrorKind, TransferError
from zksend.Kernel import getLogger
from zksend.KeySet import IV_LENGTH

logger = getLogger(__name__)

CHUNK_SIZE = 64 * 1024
TAG_LENGTH = 16
ENCRYPTED_CHUNK_SIZE = CHUNK_SIZE + TAG_LENGTH

AAD_CHUNK = b'\x00'
AAD_FINAL_CHUNK = b'\x01'


def chunkCount(size: int) -> int:
    """Number of chunks a plaintext of the given size is cut into"""
    if size < 0:
        raise ValueError("Size must not be negative")
    return max(1, -(-size // CHUNK_SIZE))


def encryptedLength(size: int) -> int:
    """Ciphertext length of a plaintext of the given size: one tag per chunk"""
    return size + TAG_LENGTH * chunkCount(size)


def buildNonce(iv: bytes, chunkIndex: int) -> bytes:
    """Build the 12-byte nonce of a chunk, ``iv XOR chunkIndex`` (96-bit big-endian)"""
    if len(iv) != IV_LENGTH:
        raise ValueError(f"IV must be {IV_LENGTH} bytes")
    if not 0 <= chunkIndex < 2**32:
        raise ValueError(f"Chunk index out of range: {chunkIndex}")

    value = int.from_bytes(iv, 'big') ^ chunkIndex
    return value.to_bytes(IV_LENGTH, 'big')


def buildAAD(final: bool) -> bytes:
    return AAD_FINAL_CHUNK if final else AAD_CHUNK


class EncryptedFileReader:
    """Pull-based reader presenting the ciphertext of a plaintext source

    Chunks are encrypted lazily as the consumer reads, at most one encrypted
    chunk is buffered. The total length is known up front so it can be
    declared as a content length.
    """

    def __init__(self, source, size: int, fileKey: bytes, iv: bytes, crypto=None):
        if iv is None or len(iv) != IV_LENGTH:
            raise TransferError(ErrorKind.STREAM_CREATE, detail="missing or malformed iv")

        crypto = crypto or CryptoInterface()
        try:
            self.aesgcm = crypto.createAESGCM(fileKey)
        except (ValueError, TypeError) as e:
            raise TransferError(ErrorKind.STREAM_CREATE, cause=e) from e

        self.crypto = crypto
        self.source = source
        self.size = size
        self.iv = iv
        self.chunkIndex = 0
        self.chunks = chunkCount(size)
        self.consumed = 0 # plaintext bytes read from source
        self.buffer = bytearray() # pending ciphertext begins at bufferOffset
        self.bufferOffset = 0
        self.len = encryptedLength(size)
        self.closed = False

    @classmethod
    def open(cls, path, fileKey: bytes, iv: bytes, crypto=None) -> 'EncryptedFileReader':
        """Open a file and wrap it, the reader owns (and closes) the file"""
        try:
            source = open(path, 'rb')
            size = os.fstat(source.fileno()).st_size
        except OSError as e:
            raise TransferError(ErrorKind.FILE_OPEN, cause=e, detail=str(e)) from e

        try:
            return cls(source, size, fileKey, iv, crypto=crypto)
        except TransferError:
            source.close()
            raise

    def __len__(self):
        return self.len

    def _readPlaintext(self, length: int) -> bytes:
        parts = []
        remaining = length
        while remaining > 0:
            data = self.source.read(remaining)
            if not data:
                break
            parts.append(data)
            remaining -= len(data)
        return b''.join(parts)

    def _encryptNextChunk(self) -> bytes:
        final = self.chunkIndex == self.chunks - 1
        expected = min(CHUNK_SIZE, self.size - self.consumed)

        try:
            plaintext = self._readPlaintext(expected)
            if final and self.source.read(1):
                raise TransferError(ErrorKind.STREAM_READ, detail="file grew during upload")
        except OSError as e:
            raise TransferError(ErrorKind.STREAM_READ, cause=e, detail=str(e)) from e

        if len(plaintext) != expected:
            raise TransferError(ErrorKind.STREAM_READ, detail="file shrank during upload")

        nonce = buildNonce(self.iv, self.chunkIndex)
        _, ciphertext = self.crypto.encryptAESGCM(self.aesgcm, plaintext, nonce, buildAAD(final))

        self.consumed += len(plaintext)
        self.chunkIndex += 1
        return ciphertext

    def read(self, size=-1) -> bytes:
        if self.closed:
            raise ValueError("I/O operation on closed reader")

        if size is None or size < 0:
            size = self.len

        if len(self.buffer) - self.bufferOffset < size and self.chunkIndex < self.chunks:
            # Compact once per refill
            del self.buffer[:self.bufferOffset]
            self.bufferOffset = 0
            while len(self.buffer) < size and self.chunkIndex < self.chunks:
                self.buffer += self._encryptNextChunk()

        data = bytes(self.buffer[self.bufferOffset:self.bufferOffset + size])
        self.bufferOffset += len(data)
        return data

    def close(self):
        if not self.closed:
            self.closed = True
            self.source.close()

    def __enter__(self):
        return self

    def __exit__(self, excType, excVal, excTb):
        self.close()


class StreamDecryptor:
    """Push-based decryptor: feed ciphertext pieces, get plaintext back

    A full encrypted chunk is only decrypted once more data follows it, since
    only the last chunk of the stream may carry the final flag. flush() ends
    the stream and decrypts the last chunk. Any tag failure raises INTEGRITY
    and no plaintext of that chunk is returned.
    """

    def __init__(self, fileKey: bytes, iv: bytes, crypto=None):
        if iv is None or len(iv) != IV_LENGTH:
            raise TransferError(ErrorKind.STREAM_CREATE, detail="missing or malformed iv")

        self.crypto = crypto or CryptoInterface()
        try:
            self.aesgcm = self.crypto.createAESGCM(fileKey)
        except (ValueError, TypeError) as e:
            raise TransferError(ErrorKind.STREAM_CREATE, cause=e) from e

        self.iv = iv
        self.chunkIndex = 0
        self.chunkBuffer = bytearray()
        self.finished = False
        self.produced = 0

    def _decryptChunk(self, encryptedChunk: bytes, final: bool) -> bytes:
        nonce = buildNonce(self.iv, self.chunkIndex)
        try:
            plaintext = self.crypto.decryptAESGCM(self.aesgcm, nonce, encryptedChunk, buildAAD(final))
        except InvalidTagError as e:
            logger.warning(f"Authentication failed for chunk {self.chunkIndex} (final={final})")
            raise TransferError(ErrorKind.INTEGRITY, cause=e, detail=f"chunk {self.chunkIndex}") from e

        self.chunkIndex += 1
        self.produced += len(plaintext)
        return plaintext

    def processChunk(self, data: bytes) -> bytes:
        """Accumulate ciphertext and decrypt every chunk known not to be the last one"""
        if self.finished:
            raise TransferError(ErrorKind.INTEGRITY, detail="data after the end of the stream")

        self.chunkBuffer += data
        plaintext = []

        offset = 0
        while len(self.chunkBuffer) - offset > ENCRYPTED_CHUNK_SIZE:
            encryptedChunk = bytes(self.chunkBuffer[offset:offset + ENCRYPTED_CHUNK_SIZE])
            offset += ENCRYPTED_CHUNK_SIZE
            plaintext.append(self._decryptChunk(encryptedChunk, final=False))

        if offset:
            del self.chunkBuffer[:offset]

        return b''.join(plaintext)

    def flush(self) -> bytes:
        """Decrypt the final chunk"""
        if self.finished:
            return b''

        if len(self.chunkBuffer) < TAG_LENGTH:
            raise TransferError(ErrorKind.INTEGRITY, detail="stream truncated")

        plaintext = self._decryptChunk(bytes(self.chunkBuffer), final=True)
        self.chunkBuffer = bytearray()
        self.finished = True
        return plaintext


def decryptStream(chunks: Iterable[bytes], fileKey: bytes, iv: bytes, crypto=None) -> Iterator[bytes]:
    """Decrypt an iterable of ciphertext pieces, yielding plaintext as it is authenticated"""
    decryptor = StreamDecryptor(fileKey, iv, crypto=crypto)
    for data in chunks:
        plaintext = decryptor.processChunk(data)
        if plaintext:
            yield plaintext

    plaintext = decryptor.flush()
    if plaintext:
        yield plaintext
