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

import re

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

from zksend.Errors import ErrorKind, TransferError
from zksend.KeySet import SECRET_LENGTH
from zksend.Utils import encodeBase64URL, decodeBase64URL

SHARE_PATH_PATTERN = re.compile(r'^(?P<prefix>.*?/)download/(?P<id>[^/]+)/?$')


def _checkURL(url: str) -> str:
    """Raise ValueError unless url is an absolute http(s) URL"""
    parts = urlsplit(url)
    if parts.scheme not in ('http', 'https') or not parts.netloc:
        raise ValueError(f"Not an absolute http(s) URL: {url!r}")
    return url


def apiURL(host: str, path: str) -> str:
    """Join an API path onto a host base URL, keeping any path prefix of the host"""
    host = host if host.endswith('/') else host + '/'
    return urljoin(host, path.lstrip('/'))


@dataclass(frozen=True)
class ShareURL:
    """A parsed share link: the API host, the file id and the secret from the fragment"""
    host: str
    id: str
    url: str
    secret: bytes = field(repr=False)

    @classmethod
    def parse(cls, shareURL: str) -> 'ShareURL':
        """Parse a share URL of the form ``https://host/download/<id>/#<secret>``

        Raises:
            TransferError: INVALID_SHARE_URL when the URL is not a share link
        """
        try:
            parts = urlsplit(_checkURL(shareURL.strip()))
        except ValueError as e:
            raise TransferError(ErrorKind.INVALID_SHARE_URL, cause=e, detail="not an http(s) URL") from e

        match = SHARE_PATH_PATTERN.match(parts.path)
        if not match:
            raise TransferError(ErrorKind.INVALID_SHARE_URL, detail="missing /download/<id>/ path")

        if not parts.fragment:
            raise TransferError(ErrorKind.INVALID_SHARE_URL, detail="missing secret")

        try:
            secret = decodeBase64URL(parts.fragment)
        except ValueError as e:
            raise TransferError(ErrorKind.INVALID_SHARE_URL, cause=e, detail="malformed secret") from e

        if len(secret) != SECRET_LENGTH:
            raise TransferError(ErrorKind.INVALID_SHARE_URL, detail="secret has the wrong length")

        host = urlunsplit((parts.scheme, parts.netloc, match.group('prefix'), '', ''))
        url = urlunsplit((parts.scheme, parts.netloc, parts.path, parts.query, ''))
        return cls(host=host, id=match.group('id'), url=url, secret=secret)


@dataclass
class FileHandle:
    """Identity of a remote file: id, URLs, the secret and the owner token

    The secret only ever leaves this object inside a URL fragment, which
    HTTP clients do not send to the server.
    """
    id: str
    host: str
    url: str
    secret: bytes = field(repr=False)
    owner: Optional[str] = field(default=None, repr=False)
    createdAt: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def now(cls, id, host, url, secret, owner) -> 'FileHandle':
        """Create a handle for a file that has just been uploaded

        Raises:
            ValueError: If url is not an absolute http(s) URL
        """
        return cls(id=id, host=host, url=_checkURL(url), secret=secret, owner=owner)

    @classmethod
    def fromShareURL(cls, shareURL: str) -> 'FileHandle':
        """Handle of a file known from its share link, it carries no owner token"""
        share = ShareURL.parse(shareURL)
        return cls(id=share.id, host=share.host, url=share.url, secret=share.secret)

    def downloadURL(self, includeSecret: bool = True) -> str:
        """The download URL, with the secret as fragment only if includeSecret"""
        parts = urlsplit(self.url)
        fragment = encodeBase64URL(self.secret) if includeSecret else ''
        return urlunsplit((parts.scheme, parts.netloc, parts.path, parts.query, fragment))
