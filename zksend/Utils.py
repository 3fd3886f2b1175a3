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

import base64
import os
import sys

import bitmath

from zksend.Kernel import getLogger

ONE_KB = bitmath.KiB(1).bytes
ONE_MB = bitmath.MiB(1).bytes
ONE_GB = bitmath.GiB(1).bytes
ONE_TB = bitmath.TiB(1).bytes

logger = getLogger(__name__)


# Share URLs are read by scripts from a pipe, so every line is flushed.
def flushPrint(text):
    try:
        print(text, flush=True)
    except UnicodeEncodeError as e:
        logger.debug(f"Console cannot encode output ({sys.stdout.encoding=}): {e}")

        buffer = getattr(sys.stdout, 'buffer', None)
        if buffer is None:
            encoding = sys.stdout.encoding or 'ascii'
            print(text.encode(encoding, errors='replace').decode(encoding), flush=True)
            return

        buffer.write(text.encode('utf-8', errors='replace') + b'\n')
        buffer.flush()


def formatSize(size, decimal=None, plural=None):
    """Human readable SI size: '0 Bytes', '512 Bytes', '3M', '1.5G'"""
    if decimal is None:
        decimal = 0 if size < ONE_GB else (1 if size < ONE_TB else 2)
    if plural is None:
        plural = size <= ONE_KB

    best = bitmath.Byte(size).best_prefix(system=bitmath.SI)
    text = best.format("{value:.%df}{%s}" % (decimal, 'unit_plural' if plural else 'unit'))

    if best.unit in ('Byte', 'Bit'):
        return text.replace('Byte', ' Byte').replace('Bit', ' Byte')
    return text.replace('B', '').upper()


def encodeBase64URL(data: bytes) -> str:
    """Encode bytes as unpadded URL-safe base64, the encoding used for keys, headers and URL fragments"""
    return base64.urlsafe_b64encode(data).decode('ascii').rstrip('=')


def decodeBase64URL(text: str) -> bytes:
    """Decode unpadded (or padded) URL-safe base64

    Raises:
        ValueError: If the text is not valid URL-safe base64
    """
    if isinstance(text, bytes):
        text = text.decode('ascii')

    text = text.strip()
    padding = '=' * (-len(text) % 4)
    try:
        return base64.b64decode(text + padding, altchars=b'-_', validate=True)
    except ValueError as e:
        raise ValueError(f"Invalid base64url data: {e}") from e


def sendException(logger, e, action=None):
    """Print a failed action as one line for the user, the full cause chain only goes to the debug log"""
    if hasattr(e, 'userMessage'):
        flushPrint(e.userMessage(action))
        logger.debug(f"Cause chain: {[f'{type(cause).__name__}: {cause}' for cause in e.chain()]}")
    elif action is not None:
        flushPrint(f'{action.value}: {e}')
    else:
        flushPrint(f'Oops, something went wrong: {e}')

    flushPrint('Please try again or try later.')
    logger.debug(f'{type(e).__name__}: {e}', exc_info=e)

    if os.getenv('RAISE_EXCEPTION', 'False') == 'True':
        raise e


def getEnv(envVar, default):
    """Read an environment variable converted to the type of default

    Unset or unparsable values give default. A default of None returns the raw string.
    """
    value = os.getenv(envVar)
    if value is None:
        return default
    if default is None:
        return value

    try:
        if isinstance(default, bool):
            return value == 'True'
        return type(default)(value)
    except (ValueError, TypeError):
        return default
