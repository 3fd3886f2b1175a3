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

import logging
import unittest

from zksend.Kernel import LOG_LEVEL_MAPPING, classForName, getLogger


class KernelTest(unittest.TestCase):

    def testGetLogger(self):
        logger = getLogger('zksend.tests.kernel')
        again = getLogger('zksend.tests.kernel')

        self.assertIsInstance(logger, logging.LoggerAdapter)
        self.assertEqual(logger.extra['version'], again.extra['version'])
        self.assertEqual(len(logging.getLogger('zksend.tests.kernel').handlers), 1)

    def testClassForName(self):
        self.assertIs(classForName('logging.LoggerAdapter'), logging.LoggerAdapter)
        self.assertIs(classForName('logging'), logging)

        with self.assertRaises(ImportError):
            classForName('logging.NoSuchThing')

    def testLogLevelMapping(self):
        self.assertEqual(LOG_LEVEL_MAPPING['DEBUG'], logging.DEBUG)
        self.assertEqual(set(LOG_LEVEL_MAPPING), {'DEBUG', 'INFO', 'WARNING', 'ERROR'})


if __name__ == '__main__':
    unittest.main()
