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
Error model shared by every stage of a transfer.

A single exception type, TransferError, is tagged with an ErrorKind. Each
kind belongs to an ErrorStage and carries a fixed message. The underlying
exception is kept as ``cause`` (and as ``__cause__`` when raised with
``from``) so the full chain stays available for logging and tests, while
``userMessage()`` flattens it into one line per top-level action.
"""

from enum import Enum
from typing import Optional


class ErrorStage(Enum):
    PREPARE = 'prepare'
    FILE = 'file'
    TRANSFER = 'transfer'
    INTEGRITY = 'integrity'
    LINK = 'link'
    INTERNAL = 'internal'


class ErrorKind(Enum):
    """Kinds of transfer failures, each value is (stage, message)"""

    # Preparation
    META_ENCRYPT = (ErrorStage.PREPARE, "Failed to encrypt file metadata")
    STREAM_CREATE = (ErrorStage.PREPARE, "Failed to create file encryptor")
    PROGRESS_INIT = (ErrorStage.PREPARE, "Failed to create progress reader")

    # File access
    NOT_A_FILE = (ErrorStage.FILE, "The path is not an existing file")
    FILE_OPEN = (ErrorStage.FILE, "Failed to open the file")
    FILE_WRITE = (ErrorStage.FILE, "Failed to write the downloaded file")
    STREAM_READ = (ErrorStage.FILE, "Failed to read the file while encrypting it")

    # Transfer
    PROGRESS = (ErrorStage.TRANSFER, "Failed to update transfer progress")
    REQUEST = (ErrorStage.TRANSFER, "Failed to send the request")
    REQUEST_STATUS = (ErrorStage.TRANSFER, "Bad HTTP response")
    DECODE = (ErrorStage.TRANSFER, "Failed to decode the server response")
    PARSE_URL = (ErrorStage.TRANSFER, "Failed to parse received URL")

    # Content integrity
    INTEGRITY = (ErrorStage.INTEGRITY, "File content failed authentication, it was tampered with or truncated")

    # Share link
    INVALID_SHARE_URL = (ErrorStage.LINK, "The share URL is invalid")
    MISSING_METADATA = (ErrorStage.LINK, "The server did not return file metadata")
    META_DECRYPT = (ErrorStage.LINK, "Failed to decrypt file metadata, the link is wrong or malformed")
    META_PARSE = (ErrorStage.LINK, "Failed to parse file metadata, the link is malformed or unsupported")

    # Internal invariants
    KEY_DERIVATION = (ErrorStage.INTERNAL, "Failed to derive keys, the crypto backend rejected the key sizes")

    @property
    def stage(self) -> ErrorStage:
        return self.value[0]

    @property
    def message(self) -> str:
        return self.value[1]


class Action(Enum):
    """Top-level user actions, used to flatten errors into a single message"""
    UPLOAD = "Failed to upload the specified file"
    DOWNLOAD = "Failed to download the requested file"


class TransferError(Exception):
    """Failure of one stage of an upload or download"""

    def __init__(
        self,
        kind: ErrorKind,
        cause: Optional[BaseException] = None,
        statusCode: Optional[int] = None,
        serverMessage: Optional[str] = None,
        detail: Optional[str] = None
    ):
        self.kind = kind
        self.cause = cause
        self.statusCode = statusCode
        self.serverMessage = serverMessage
        self.detail = detail
        super().__init__(self._format())

    def _format(self):
        if self.kind is ErrorKind.REQUEST_STATUS:
            return f"{self.kind.message} '{self.statusCode}': {self.serverMessage}"

        if self.detail:
            return f"{self.kind.message}: {self.detail}"

        return self.kind.message

    @property
    def stage(self) -> ErrorStage:
        return self.kind.stage

    @property
    def isLinkError(self) -> bool:
        """True when the failure means the share link itself is wrong or malformed"""
        return self.kind.stage is ErrorStage.LINK

    def chain(self) -> list:
        """Return this error followed by every underlying cause, outermost first"""
        chain = [self]
        seen = {id(self)}
        current = self.cause if self.cause is not None else self.__cause__
        while current is not None and id(current) not in seen:
            chain.append(current)
            seen.add(id(current))
            nested = getattr(current, 'cause', None)
            current = nested if nested is not None else current.__cause__
        return chain

    def userMessage(self, action: Optional[Action] = None) -> str:
        """Flatten into one line for display, deep causes are left to the logs"""
        if action is None:
            return str(self)
        return f"{action.value}: {self}"
