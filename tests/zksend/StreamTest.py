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

import io
import os
import unittest

from zksend.Errors import ErrorKind, TransferError
from zksend.KeySet import KeySet
from zksend.Stream import (
    CHUNK_SIZE, ENCRYPTED_CHUNK_SIZE, TAG_LENGTH, EncryptedFileReader, StreamDecryptor, buildNonce, chunkCount,
    decryptStream, encryptedLength
)

from tests.TransferTestBase import TransferTestBase, readAll

SIZES = [0, 1, CHUNK_SIZE - 1, CHUNK_SIZE, CHUNK_SIZE + 1, 3 * CHUNK_SIZE + 1234]


def encrypt(plaintext, keySet, blockSize=8191):
    reader = EncryptedFileReader(io.BytesIO(plaintext), len(plaintext), keySet.fileKey, keySet.iv)
    return readAll(reader, blockSize)


def pieces(data, size):
    return [data[offset:offset + size] for offset in range(0, len(data), size)]


class StreamLayoutTest(unittest.TestCase):

    def testChunkCount(self):
        self.assertEqual(chunkCount(0), 1)
        self.assertEqual(chunkCount(1), 1)
        self.assertEqual(chunkCount(CHUNK_SIZE), 1)
        self.assertEqual(chunkCount(CHUNK_SIZE + 1), 2)
        self.assertEqual(chunkCount(5 * CHUNK_SIZE), 5)

    def testEncryptedLength(self):
        self.assertEqual(encryptedLength(0), TAG_LENGTH)
        self.assertEqual(encryptedLength(CHUNK_SIZE), CHUNK_SIZE + TAG_LENGTH)
        self.assertEqual(encryptedLength(CHUNK_SIZE + 1), CHUNK_SIZE + 1 + 2 * TAG_LENGTH)

    def testNonceIsInjectiveInTheCounter(self):
        iv = os.urandom(12)
        nonces = {buildNonce(iv, index) for index in range(5000)}

        self.assertEqual(len(nonces), 5000)
        self.assertEqual(buildNonce(iv, 0), iv)
        self.assertTrue(all(len(nonce) == 12 for nonce in nonces))

    def testNonceKnownValue(self):
        iv = bytes.fromhex('000102030405060708090a0b')
        self.assertEqual(buildNonce(iv, 1).hex(), '000102030405060708090a0a')
        self.assertEqual(buildNonce(iv, 0x01000000).hex(), '000102030405060709090a0b')


class StreamRoundTripTest(unittest.TestCase):

    def setUp(self):
        self.keySet = KeySet.generate()

    def testRoundTrip(self):
        for size in SIZES:
            with self.subTest(size=size):
                plaintext = os.urandom(size)
                ciphertext = encrypt(plaintext, self.keySet)

                self.assertEqual(len(ciphertext), encryptedLength(size))
                if size >= 64:
                    self.assertNotIn(plaintext[:64], ciphertext)

                # Feed the decryptor with pieces that straddle chunk boundaries
                for pieceSize in (1000, ENCRYPTED_CHUNK_SIZE, ENCRYPTED_CHUNK_SIZE + 7):
                    output = b''.join(decryptStream(pieces(ciphertext, pieceSize), self.keySet.fileKey, self.keySet.iv))
                    self.assertEqual(output, plaintext)

    def testBuffersStayBounded(self):
        plaintext = os.urandom(8 * CHUNK_SIZE + 5)
        reader = EncryptedFileReader(io.BytesIO(plaintext), len(plaintext), self.keySet.fileKey, self.keySet.iv)

        parts = []
        while True:
            data = reader.read(1000)
            if not data:
                break
            self.assertLessEqual(len(reader.buffer), 1000 + ENCRYPTED_CHUNK_SIZE)
            parts.append(data)
        ciphertext = b''.join(parts)

        # One large piece decrypts every chunk but the held-back last one
        decryptor = StreamDecryptor(self.keySet.fileKey, self.keySet.iv)
        output = decryptor.processChunk(ciphertext)
        self.assertEqual(output, plaintext[:8 * CHUNK_SIZE])
        self.assertEqual(len(decryptor.chunkBuffer), 5 + TAG_LENGTH)
        self.assertEqual(output + decryptor.flush(), plaintext)

    def testReaderDeclaresItsLength(self):
        plaintext = os.urandom(2 * CHUNK_SIZE + 10)
        reader = EncryptedFileReader(io.BytesIO(plaintext), len(plaintext), self.keySet.fileKey, self.keySet.iv)

        self.assertEqual(len(reader), encryptedLength(len(plaintext)))
        self.assertEqual(len(reader.read()), len(reader))
        self.assertEqual(reader.read(100), b'')

    def testSameInputEncryptsIdentically(self):
        plaintext = os.urandom(CHUNK_SIZE + 5)
        self.assertEqual(encrypt(plaintext, self.keySet), encrypt(plaintext, self.keySet, blockSize=333))

    def testOpenMissingFile(self):
        with self.assertRaises(TransferError) as context:
            EncryptedFileReader.open('/nonexistent/zksend/file.bin', self.keySet.fileKey, self.keySet.iv)
        self.assertIs(context.exception.kind, ErrorKind.FILE_OPEN)

    def testMissingIVIsConstructionFailure(self):
        with self.assertRaises(TransferError) as context:
            EncryptedFileReader(io.BytesIO(b''), 0, self.keySet.fileKey, None)
        self.assertIs(context.exception.kind, ErrorKind.STREAM_CREATE)

        with self.assertRaises(TransferError) as context:
            StreamDecryptor(self.keySet.fileKey, b'short')
        self.assertIs(context.exception.kind, ErrorKind.STREAM_CREATE)

    def testSourceShrinkingIsReadFailure(self):
        reader = EncryptedFileReader(io.BytesIO(b'x' * 10), 20, self.keySet.fileKey, self.keySet.iv)
        with self.assertRaises(TransferError) as context:
            reader.read()
        self.assertIs(context.exception.kind, ErrorKind.STREAM_READ)

    def testSourceGrowingIsReadFailure(self):
        reader = EncryptedFileReader(io.BytesIO(b'x' * 30), 20, self.keySet.fileKey, self.keySet.iv)
        with self.assertRaises(TransferError) as context:
            reader.read()
        self.assertIs(context.exception.kind, ErrorKind.STREAM_READ)


class StreamIntegrityTest(unittest.TestCase):

    def setUp(self):
        self.keySet = KeySet.generate()
        self.plaintext = os.urandom(2 * CHUNK_SIZE + 500)
        self.ciphertext = encrypt(self.plaintext, self.keySet)

    def decrypt(self, ciphertext, keySet=None):
        """Decrypt, returning (plaintext produced before failure, error)"""
        keySet = keySet or self.keySet
        output = []
        try:
            for data in decryptStream(pieces(ciphertext, 4096), keySet.fileKey, keySet.iv):
                output.append(data)
        except TransferError as e:
            return b''.join(output), e
        return b''.join(output), None

    def assertIntegrityFailure(self, ciphertext, keySet=None):
        output, error = self.decrypt(ciphertext, keySet)
        self.assertIsNotNone(error, "tampered stream must not decrypt")
        self.assertIs(error.kind, ErrorKind.INTEGRITY)
        self.assertEqual(error.stage.name, 'INTEGRITY')
        # Only authenticated, unaltered plaintext may have been produced
        self.assertTrue(self.plaintext.startswith(output))
        self.assertLess(len(output), len(self.plaintext))
        return output

    def testBitFlipInEveryChunkAndTag(self):
        chunkStarts = range(0, len(self.ciphertext), ENCRYPTED_CHUNK_SIZE)
        for start in chunkStarts:
            end = min(start + ENCRYPTED_CHUNK_SIZE, len(self.ciphertext))
            for position in (start, (start + end) // 2, end - TAG_LENGTH, end - 1):
                with self.subTest(position=position):
                    tampered = bytearray(self.ciphertext)
                    tampered[position] ^= 0x80
                    output = self.assertIntegrityFailure(bytes(tampered))
                    # Nothing of the tampered chunk is released
                    self.assertLessEqual(len(output), (start // ENCRYPTED_CHUNK_SIZE) * CHUNK_SIZE)

    def testWrongKey(self):
        self.assertIntegrityFailure(self.ciphertext, KeySet.fromSecret(os.urandom(16), self.keySet.iv))

    def testTruncationAtChunkBoundary(self):
        self.assertIntegrityFailure(self.ciphertext[:2 * ENCRYPTED_CHUNK_SIZE])
        self.assertIntegrityFailure(self.ciphertext[:ENCRYPTED_CHUNK_SIZE])

    def testTruncationInsideChunk(self):
        self.assertIntegrityFailure(self.ciphertext[:-1])
        self.assertIntegrityFailure(self.ciphertext[:TAG_LENGTH - 1])

    def testEmptyStream(self):
        self.assertIntegrityFailure(b'')

    def testTrailingData(self):
        self.assertIntegrityFailure(self.ciphertext + b'\x00')
        self.assertIntegrityFailure(self.ciphertext + self.ciphertext[-ENCRYPTED_CHUNK_SIZE:])

    def testReorderedChunks(self):
        first = self.ciphertext[:ENCRYPTED_CHUNK_SIZE]
        second = self.ciphertext[ENCRYPTED_CHUNK_SIZE:2 * ENCRYPTED_CHUNK_SIZE]
        rest = self.ciphertext[2 * ENCRYPTED_CHUNK_SIZE:]
        self.assertIntegrityFailure(second + first + rest)

    def testDataAfterFlushIsRejected(self):
        decryptor = StreamDecryptor(self.keySet.fileKey, self.keySet.iv)
        decryptor.processChunk(self.ciphertext)
        decryptor.flush()

        with self.assertRaises(TransferError) as context:
            decryptor.processChunk(b'\x00')
        self.assertIs(context.exception.kind, ErrorKind.INTEGRITY)


class EncryptedFileTest(TransferTestBase):

    def testOpenAndEncryptFile(self):
        keySet = KeySet.generate()
        plaintext = os.urandom(CHUNK_SIZE * 2)
        path = self.createFile('data.bin', plaintext)

        with EncryptedFileReader.open(path, keySet.fileKey, keySet.iv) as reader:
            ciphertext = readAll(reader)

        self.assertTrue(reader.closed)
        self.assertEqual(b''.join(decryptStream([ciphertext], keySet.fileKey, keySet.iv)), plaintext)


if __name__ == '__main__':
    unittest.main()
