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

import argparse
import logging
import sys

import requests

from zksend.Errors import Action, TransferError
from zksend.Kernel import LOG_LEVEL_MAPPING, PUBLIC_VERSION, configureGlobalLogLevel, getLogger
from zksend.Download import Download
from zksend.Progress import LoggingProgress, ProgressBar, ProgressTracker
from zksend.Settings import DEFAULT_HOST
from zksend.Upload import Upload
from zksend.Utils import flushPrint, sendException

logger = getLogger(__name__)


def configureCLIParser():
    parser = argparse.ArgumentParser(prog='zksend', description='Zero-knowledge file sharing client')
    parser.add_argument('--version', action='version', version=f'%(prog)s {PUBLIC_VERSION}')
    parser.add_argument(
        '--log-level', dest='logLevel', choices=sorted(LOG_LEVEL_MAPPING), help='Logging level'
    )
    parser.add_argument('--no-bar', dest='noBar', action='store_true', help='Log progress instead of drawing a bar')

    subparsers = parser.add_subparsers(dest='command')

    uploadParser = subparsers.add_parser('upload', aliases=['u', 'up'], help='Upload a file')
    uploadParser.add_argument('file', help='The file to upload')
    uploadParser.add_argument('--host', default=DEFAULT_HOST, help='The Send host to upload to')

    downloadParser = subparsers.add_parser('download', aliases=['d', 'down'], help='Download a file')
    downloadParser.add_argument('url', help='The share URL')
    downloadParser.add_argument('--output', '-o', default=None, help='Output file or directory')

    return parser


def configureLogging(logLevel):
    logging.getLogger('urllib3').setLevel(logging.INFO)
    logging.getLogger('sentry_sdk').setLevel(logging.INFO)

    if logLevel:
        configureGlobalLogLevel(LOG_LEVEL_MAPPING[logLevel])


def createTracker(args, reporterFactory):
    reporter = LoggingProgress(loggerCallback=flushPrint) if args.noBar else reporterFactory()
    return ProgressTracker(reporter)


def processUpload(args, session):
    tracker = createTracker(args, ProgressBar.forUpload)
    try:
        file = Upload(args.host, args.file).invoke(session, tracker)
    except TransferError as e:
        sendException(logger, e, Action.UPLOAD)
        return 1

    flushPrint(f'Download URL: {file.downloadURL(True)}')
    return 0


def processDownload(args, session):
    tracker = createTracker(args, ProgressBar.forDownload)
    try:
        result = Download(args.url, args.output).invoke(session, tracker)
    except TransferError as e:
        sendException(logger, e, Action.DOWNLOAD)
        return 1

    flushPrint(f'Downloaded: {result.path}')
    return 0


def main(argv=None):
    parser = configureCLIParser()
    args = parser.parse_args(argv)

    configureLogging(args.logLevel)

    if args.command is None:
        parser.print_help()
        return 0

    with requests.Session() as session:
        if args.command in ('upload', 'u', 'up'):
            return processUpload(args, session)
        return processDownload(args, session)


if __name__ == '__main__':
    try:
        sys.exit(main() or 0)
    except KeyboardInterrupt:
        flushPrint('\nExiting on user request (Ctrl+C)...')
        sys.exit(0)
