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

import importlib
import logging
import os

import sentry_sdk

from sentry_sdk.integrations import atexit as sentryAtexit
from sentry_sdk.integrations.logging import LoggingIntegration, SentryHandler

PUBLIC_VERSION = '0.3.0'

LOG_LEVEL_MAPPING = {'DEBUG': logging.DEBUG, 'INFO': logging.INFO, 'WARNING': logging.WARNING, 'ERROR': logging.ERROR}

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def configureGlobalLogLevel(logLevel):
    """
    Set the level of the root logger and of its console handlers.

    A console handler is installed when the root logger has none yet, so
    setting a level is enough to make zksend log to stderr.
    """
    rootLogger = logging.getLogger()
    rootLogger.setLevel(logLevel)

    formatter = logging.Formatter(LOG_FORMAT)
    consoleHandlers = [
        handler for handler in rootLogger.handlers
        if isinstance(handler, logging.StreamHandler) and not isinstance(handler, SentryHandler)
    ]
    if not consoleHandlers:
        consoleHandler = logging.StreamHandler()
        rootLogger.addHandler(consoleHandler)
        consoleHandlers = [consoleHandler]

    for handler in consoleHandlers:
        handler.setLevel(logLevel)
        handler.setFormatter(formatter)


_envLogLevel = LOG_LEVEL_MAPPING.get(os.getenv('ZKSEND_LOGGING_LEVEL', '').upper())
if _envLogLevel is not None:
    configureGlobalLogLevel(_envLogLevel)


def _initializeSentry():
    """Start Sentry once when SENTRY_DSN is set, returns True if this call started it"""
    sentryDsn = os.getenv('SENTRY_DSN')
    if not sentryDsn or sentry_sdk.get_client().is_active():
        return False

    # No "sentry is attempting to send pending events" banner at exit
    sentryAtexit.default_callback = lambda pending, timeout: None

    sentry_sdk.init(
        dsn=sentryDsn,
        release=f'zksend@{PUBLIC_VERSION}',
        default_integrations=False,
        send_default_pii=False,
        integrations=[LoggingIntegration(), sentryAtexit.AtexitIntegration()],
    )
    return True


def getLogger(name, version=PUBLIC_VERSION):
    """
    Return a logger adapter for name, tagged with the client version.

    Records go through a SentryHandler, which stays inert unless Sentry was
    started from SENTRY_DSN. If Sentry cannot be set up the plain logger is
    returned.
    """
    try:
        sentryStarted = _initializeSentry()

        logger = logging.getLogger(name)
        if not any(isinstance(handler, SentryHandler) for handler in logger.handlers):
            sentryHandler = SentryHandler()
            sentryHandler.setFormatter(logging.Formatter('%(asctime)s version[%(version)s] : %(message)s'))
            logger.addHandler(sentryHandler)

        adapter = logging.LoggerAdapter(logger, {'version': version or 'unknown'})
        if sentryStarted:
            adapter.debug('Sentry initialized')
        return adapter

    except Exception as e:
        fallbackLogger = logging.getLogger(name)
        fallbackLogger.warning(f"Failed to initialize Sentry: {e}")
        return fallbackLogger


def classForName(qualifiedName):
    """
    Resolve a dotted name to a module, or to an attribute of a module.

    Raises:
        ImportError: If the module cannot be imported or lacks the attribute
    """
    qualifiedName = str(qualifiedName)
    moduleName, _, attributeName = qualifiedName.rpartition('.')
    if not moduleName:
        return importlib.import_module(qualifiedName)

    module = importlib.import_module(moduleName)
    try:
        return getattr(module, attributeName)
    except AttributeError:
        raise ImportError(f"Unable to import '{qualifiedName}'.")
