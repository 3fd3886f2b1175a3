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

import threading
import time

from tqdm import tqdm

from zksend.Errors import ErrorKind, TransferError
from zksend.Kernel import getLogger
from zksend.Settings import PROGRESS_LOCK_TIMEOUT, PROGRESS_LOG_INTERVAL
from zksend.Utils import formatSize

logger = getLogger(__name__)


class ProgressReporter:
    """Consumer of transfer progress, e.g. a console bar"""

    def start(self, total):
        """Called once before the transfer with the expected byte count (None if unknown)"""
        raise NotImplementedError

    def update(self, transferred):
        """Called with the cumulative number of bytes transferred"""
        raise NotImplementedError

    def finish(self):
        """Called exactly once when the transfer ends, successfully or not"""
        raise NotImplementedError


class ProgressTracker:
    """Progress state shared between the transfer thread and a reporting thread

    The state lock is held only while the counters change or are copied.
    Reporter callbacks run after it is released, serialised by a separate
    lock, so a slow reporter never blocks snapshot() and the reporter still
    sees start, non-decreasing updates and a single finish, in that order.
    """

    def __init__(self, reporter: ProgressReporter = None, lockTimeout=PROGRESS_LOCK_TIMEOUT):
        self.reporter = reporter
        self.lockTimeout = lockTimeout
        self._lock = threading.Lock()
        self._reportLock = threading.Lock()

        self.total = None
        self.transferred = 0
        self.started = False
        self.finished = False

        self._reportState = 'idle' # idle, started or finished
        self._reported = 0

    def _acquire(self):
        if not self._lock.acquire(timeout=self.lockTimeout):
            raise TransferError(ErrorKind.PROGRESS, detail="progress lock unavailable")

    def _report(self, event, value=None):
        if self.reporter is None:
            return

        with self._reportLock:
            if event == 'start':
                if self._reportState != 'idle':
                    return
                self._reportState = 'started'
                self.reporter.start(value)
            elif event == 'update':
                # Stale values from a slower thread are dropped
                if self._reportState != 'started' or value <= self._reported:
                    return
                self._reported = value
                self.reporter.update(value)
            elif self._reportState != 'finished':
                self._reportState = 'finished'
                self.reporter.finish()

    def start(self, total):
        self._acquire()
        try:
            if self.started:
                raise TransferError(ErrorKind.PROGRESS, detail="progress already started")
            self.total = total
            self.started = True
        finally:
            self._lock.release()

        self._report('start', total)

    def advance(self, count):
        """Record count more transferred bytes"""
        if count <= 0:
            return

        self._acquire()
        try:
            if not self.started or self.finished:
                raise TransferError(ErrorKind.PROGRESS, detail="progress is not running")
            if self.total is not None and self.transferred + count > self.total:
                raise TransferError(
                    ErrorKind.PROGRESS, detail=f"transferred more than the expected {self.total} bytes"
                )
            self.transferred += count
            transferred = self.transferred
        finally:
            self._lock.release()

        self._report('update', transferred)

    def finish(self):
        """Mark the transfer as finished, the reporter is only notified on the first call"""
        self._acquire()
        try:
            if self.finished:
                return
            self.finished = True
        finally:
            self._lock.release()

        self._report('finish')

    def snapshot(self):
        """Consistent copy of the state: (transferred, total, started, finished)"""
        self._acquire()
        try:
            return (self.transferred, self.total, self.started, self.finished)
        finally:
            self._lock.release()


class ProgressReader:
    """Wraps a reader and reports every successfully read byte to a tracker"""

    def __init__(self, reader, tracker: ProgressTracker):
        if not hasattr(reader, 'read'):
            raise TransferError(ErrorKind.PROGRESS_INIT, detail="wrapped object is not readable")
        self.reader = reader
        self.tracker = tracker

    def read(self, size=-1):
        data = self.reader.read(size)
        self.tracker.advance(len(data))
        return data

    def __len__(self):
        return len(self.reader)

    def close(self):
        self.reader.close()


KNOWN_SIZE_BAR_FORMAT = '{desc}: {percentage:3.0f}%|{bar}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}, {rate_fmt}]'
UNKNOWN_SIZE_BAR_FORMAT = '{desc}: {n_fmt} [{elapsed}, {rate_fmt}]'


class BitmathTqdm(tqdm):
    """tqdm bar whose counters and rate are rendered by formatSize"""

    def __init__(self, *args, sizeFormatter=None, **kwargs):
        self.sizeFormatter = sizeFormatter or formatSize
        kwargs.setdefault('bar_format', KNOWN_SIZE_BAR_FORMAT)
        super().__init__(*args, unit='B', unit_scale=False, **kwargs)

    @property
    def format_dict(self):
        d = super().format_dict

        rate = d.get('rate') or 0
        d['rate_fmt'] = f"{self.sizeFormatter(int(rate))}/sec" if rate > 0 else "0/sec"
        d['n_fmt'] = self.sizeFormatter(d.get('n', 0))
        total = d.get('total')
        d['total_fmt'] = self.sizeFormatter(total) if total is not None else '?'
        return d


class ProgressBar(ProgressReporter):
    """Console progress bar for uploads and downloads"""

    def __init__(self, description='Progress', sizeFormatter=None, file=None):
        self.description = description
        self.file = file
        self.sizeFormatter = sizeFormatter or formatSize
        self.pbar = None
        self.transferred = 0

    def start(self, total):
        # Unknown size: bytes and rate only, no percentage
        barFormat = KNOWN_SIZE_BAR_FORMAT if total else UNKNOWN_SIZE_BAR_FORMAT

        self.pbar = BitmathTqdm(
            total=total or None,
            desc=self.description,
            sizeFormatter=self.sizeFormatter,
            leave=True,
            ncols=100,
            ascii=False,
            bar_format=barFormat,
            file=self.file
        )

    def update(self, transferred):
        if self.pbar is None:
            return

        increment = transferred - self.transferred
        self.transferred = transferred
        if increment > 0:
            self.pbar.update(increment)

    def finish(self):
        if self.pbar is None:
            return

        try:
            self.pbar.refresh()
            self.pbar.close()
        except (ValueError, AttributeError) as e:
            logger.debug(f"Exception during progress bar cleanup: {e}")
        finally:
            self.pbar = None

    @classmethod
    def forUpload(cls):
        return cls(description='Encrypt & Upload')

    @classmethod
    def forDownload(cls):
        return cls(description='Download & Decrypt')


class LoggingProgress(ProgressReporter):
    """Reports progress as periodic log lines, for non-interactive output"""

    def __init__(self, loggerCallback=None, logInterval=PROGRESS_LOG_INTERVAL, sizeFormatter=None):
        self.loggerCallback = loggerCallback or logger.info
        self.logInterval = logInterval
        self.sizeFormatter = sizeFormatter or formatSize

        self.total = None
        self.transferred = 0
        self.startTime = None
        self.lastProgressTime = None
        self.lastProgressBytes = 0

    def start(self, total):
        self.total = total
        self.startTime = time.monotonic()
        self.lastProgressTime = self.startTime

    def update(self, transferred):
        self.transferred = transferred
        currentTime = time.monotonic()
        if (currentTime - self.lastProgressTime) >= self.logInterval:
            self._logProgress(currentTime)

    def _logProgress(self, currentTime):
        timeDelta = currentTime - self.lastProgressTime
        bytesDelta = self.transferred - self.lastProgressBytes
        speedBytesPerSec = bytesDelta / timeDelta if timeDelta > 0 else 0

        sizeDisplay = self.sizeFormatter(self.transferred)
        speedDisplay = self.sizeFormatter(int(speedBytesPerSec))
        if self.total:
            totalDisplay = self.sizeFormatter(self.total)
            percentage = self.transferred * 100.0 / self.total
            self.loggerCallback(
                f'Progress: {sizeDisplay}/{totalDisplay} ({percentage:.2f}%), {speedDisplay}/sec'
            )
        else:
            self.loggerCallback(f'Progress: {sizeDisplay}, {speedDisplay}/sec')

        self.lastProgressTime = currentTime
        self.lastProgressBytes = self.transferred

    def finish(self):
        if self.startTime is None:
            return
        self._logProgress(time.monotonic())
