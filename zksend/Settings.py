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

from zksend.Kernel import PUBLIC_VERSION
from zksend.Utils import getEnv

# Send server used when no --host is given
DEFAULT_HOST = getEnv('ZKSEND_HOST', 'https://send.firefox.com/')

# Seconds to wait for a connection or for the next response byte, the transfer itself is not bounded
REQUEST_TIMEOUT = getEnv('ZKSEND_REQUEST_TIMEOUT', 30.0)

# How long a progress update may wait for the shared progress lock
PROGRESS_LOCK_TIMEOUT = getEnv('ZKSEND_PROGRESS_LOCK_TIMEOUT', 5.0)

# Block size used when pulling the ciphertext body of a download
DOWNLOAD_BLOCK_SIZE = getEnv('ZKSEND_DOWNLOAD_BLOCK_SIZE', 1024 * 1024)

# Interval of LoggingProgress log lines
PROGRESS_LOG_INTERVAL = getEnv('ZKSEND_PROGRESS_LOG_INTERVAL', 2.0)

USER_AGENT = f'zksend/{PUBLIC_VERSION}'
