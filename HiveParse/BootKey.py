#!/bin/python

#    This file is part of python-hiveparse.
#
#   Copyright 2026 The python-hiveparse authors
#
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.
import struct
import logging
import binascii

from . import Hive
from . import HiveRecords

g_logger = logging.getLogger("hiveparse")

SELECT_VALUE_PATH = "Select\\Default"
LSA_KEY_PATH = "ControlSet%03d\\Control\\Lsa\\%s"
LSA_KEY_NAMES = ("JD", "Skew1", "GBG", "Data")
BOOT_KEY_PERMUTATION = (0x8, 0x5, 0x4, 0x2, 0xB, 0x9, 0xD, 0x3,
                        0x0, 0x6, 0x1, 0xC, 0xE, 0xA, 0xF, 0x7)

# characters taken from each Lsa key's class name
CHARS_PER_KEY = 8


class BootKeyUnavailableException(HiveRecords.HiveException):
    """
    The hive decoded fine, but does not hold the data the boot key is
    derived from. Usually this means it is not a SYSTEM hive.
    """
    def __str__(self):
        return "Boot Key Unavailable Exception (%s)" % (self._value)


def current_control_set(tree):
    """
    Get the number of the control set the system boots with, from Select\\Default.
    """
    try:
        value = Hive.resolve_value(tree, SELECT_VALUE_PATH)
    except Hive.PathNotFoundException as e:
        raise BootKeyUnavailableException("key %s not found" % (e.segment))
    if value is None:
        raise BootKeyUnavailableException("value %s not found" % (SELECT_VALUE_PATH))
    if len(value.data()) < 4:
        raise BootKeyUnavailableException("value %s holds %d bytes" % (SELECT_VALUE_PATH, len(value.data())))
    return struct.unpack_from(str("<i"), value.data())[0]


def _scrambled_chars(key):
    """
    Class names are UTF-16LE, so the meaningful bytes sit at even positions.
    """
    data = key.classname_data()
    length = min(key.classname_length(), CHARS_PER_KEY)
    if len(data) < 2 * length - 1:
        raise BootKeyUnavailableException("class name of %s is truncated" % (key.name()))
    return "".join(chr(data[i * 2]) for i in range(0, length))


def descramble(scrambled_key):
    """
    Apply the fixed boot key permutation to the 16 scrambled bytes.
    """
    return bytes(bytearray(scrambled_key[i] for i in BOOT_KEY_PERMUTATION))


def derive_boot_key(tree):
    """
    Derive the 16 byte boot key (syskey) of a SYSTEM hive.
    The class names of the JD, Skew1, GBG and Data keys under
    ControlSetXXX\\Control\\Lsa are concatenated into 32 hex digits,
    decoded, and permuted.
    Raises BootKeyUnavailableException if any part is missing or malformed.
    """
    control_set = current_control_set(tree)
    g_logger.debug("current control set is %d", control_set)

    scrambled = []
    for name in LSA_KEY_NAMES:
        path = LSA_KEY_PATH % (control_set, name)
        try:
            key = Hive.resolve_node(tree, path)
        except Hive.PathNotFoundException as e:
            raise BootKeyUnavailableException("key %s not found: %s" % (path, e.segment))
        scrambled.append(_scrambled_chars(key))

    text = "".join(scrambled)
    if len(text) != 2 * len(BOOT_KEY_PERMUTATION):
        raise BootKeyUnavailableException("expected %d scrambled characters, found %d" %
                                          (2 * len(BOOT_KEY_PERMUTATION), len(text)))
    try:
        scrambled_key = binascii.unhexlify(text)
    except (binascii.Error, ValueError):
        raise BootKeyUnavailableException("scrambled key is not hexadecimal: %s" % (text))

    return descramble(scrambled_key)
