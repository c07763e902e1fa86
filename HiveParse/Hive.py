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
import ntpath
import logging
from enum import Enum

from . import HiveRecords
from .HiveCursor import HiveCursor

g_logger = logging.getLogger("hiveparse")

REGF_MAGIC = b"regf"
PATH_DELIMITER = "\\"

# the deepest key nesting Windows allows
DEFAULT_MAX_DEPTH = 512


class HiveType(Enum):
    UNKNOWN = ""
    NTUSER = "ntuser.dat"
    SAM = "sam"
    SECURITY = "security"
    SOFTWARE = "software"
    SYSTEM = "system"
    USRCLASS = "usrclass.dat"
    BCD = "bcd"
    COMPONENTS = "components"
    DEFAULT = "default"


class PathNotFoundException(HiveRecords.HiveStructureDoesNotExist):
    """
    A key path segment has no matching subkey.
    Arguments:
    - `segment`: The path segment that was not found.
    """
    def __init__(self, segment, path=None):
        super(PathNotFoundException, self).__init__(segment)
        self.segment = segment
        self.path = path

    def __str__(self):
        if self.path is None:
            return "Hive key not found: %s" % (self.segment)
        return "Hive key not found: %s (in %s)" % (self.segment, self.path)


class HiveFile(object):
    """
    The raw content of a hive file and its 4k header block.
    Only the magic and the header boundary are needed to decode keys;
    the remaining header fields are exposed as metadata.
    """
    def __init__(self, buf, filepath=None, header_size=HiveRecords.HEADER_SIZE):
        """
        Constructor.
        Arguments:
        - `buf`: Byte string containing the hive file.
        - `filepath`: The path the content was read from, if any.
        - `header_size`: Offset of the first hive bin; stored offsets are relative to it.
        """
        if len(buf) < 4 or buf[0:4] != REGF_MAGIC:
            raise HiveRecords.MalformedHiveException("Invalid REGF ID")
        if len(buf) < header_size:
            raise HiveRecords.MalformedHiveException("Truncated header, %d bytes" % (len(buf)))

        self._buf = buf
        self._header_size = header_size
        self.filepath = filepath
        self.was_exported = False

    def __len__(self):
        return len(self._buf)

    def buf(self):
        return self._buf

    def header_size(self):
        return self._header_size

    def _unpack_dword(self, offset):
        return struct.unpack_from(str("<I"), self._buf, offset)[0]

    def hive_sequence1(self):
        """
        Get first sequence number.
        This is incremented before writing to a primary file.
        """
        return self._unpack_dword(0x4)

    def hive_sequence2(self):
        """
        Get second sequence number.
        This is set to the same value as sequence1 after a primary files has been updated.
        """
        return self._unpack_dword(0x8)

    def validate_sequence_numbers(self):
        return self.hive_sequence1() == self.hive_sequence2()

    def modification_timestamp(self):
        return HiveRecords.parse_windows_timestamp(struct.unpack_from(str("<Q"), self._buf, 0xC)[0])

    def major_version(self):
        return self._unpack_dword(0x14)

    def minor_version(self):
        return self._unpack_dword(0x18)

    def file_type(self):
        return self._unpack_dword(0x1C)

    def root_offset(self):
        """
        Get the offset of the root key cell, relative to the end of the header.
        """
        return struct.unpack_from(str("<i"), self._buf, 0x24)[0]

    def hbins_size(self):
        return self._unpack_dword(0x28)

    def hive_name(self):
        """
        Get the file name embedded in the header.
        """
        return self._buf[0x30:0x70].decode("utf-16le", "replace").rstrip("\x00")

    def hive_type(self):
        name = ntpath.basename(self.hive_name().replace("\\??\\", "")).lower()
        for t in HiveType:
            if t is not HiveType.UNKNOWN and t.value == name:
                return t
        return HiveType.UNKNOWN

    def calculate_checksum(self):
        """
        Checksum is calculated over the first 0x200 bytes:
        XOR of all D-Words from 0x00000000 to 0x000001FB with two edge cases.
        """
        xsum = 0
        for idx in range(0, 0x200 - 4, 4):
            xsum ^= self._unpack_dword(idx)
        if xsum == 0:
            return 1
        if xsum == 0xFFFFFFFF:
            return 0xFFFFFFFE
        return xsum

    def checksum(self):
        return self._unpack_dword(0x1FC)

    def validate_checksum(self):
        return self.calculate_checksum() == self.checksum()


class HiveTree(object):
    """
    The decoded key tree of a hive. Every key is decoded eagerly, once,
    when the tree is constructed. Keys are also indexed by their absolute
    position, which is how the parent relation is resolved.
    """
    def __init__(self, hive, max_depth=DEFAULT_MAX_DEPTH):
        """
        Constructor.
        Arguments:
        - `hive`: A HiveFile.
        - `max_depth`: The number of key levels accepted below the root before
              failing with DepthExceededException. The root itself is level 0,
              so the tree holds at most max_depth + 1 levels.
        """
        self._hive = hive
        self._max_depth = max_depth
        self._keys = {}
        self._root = self._decode(HiveCursor(hive.buf()))

    def __repr__(self):
        return 'HiveTree(hive_name="{0}", keys={1})'.format(self._hive.hive_name(), len(self._keys))

    def hive(self):
        return self._hive

    def root(self):
        return self._root

    def __len__(self):
        return len(self._keys)

    def __iter__(self):
        """
        Yield every key, parents before their subkeys.
        """
        stack = [self._root]
        while stack:
            key = stack.pop()
            yield key
            stack.extend(reversed(key.subkeys()))

    def key_at(self, position):
        return self._keys[position]

    def parent(self, key):
        """
        Get the parent NodeRecord of `key`, or None for the root.
        """
        if key.parent_position() is None:
            return None
        return self._keys[key.parent_position()]

    def path(self, key):
        """
        Get the path of `key` from the root, without the root's name.
        """
        names = []
        while key.parent_position() is not None:
            names.append(key.name())
            key = self.parent(key)
        return PATH_DELIMITER.join(reversed(names))

    def _decode_key(self, cursor, position):
        if position in self._keys:
            raise HiveRecords.CycleDetectedException("key at 0x%x is referenced twice" % (position))
        cursor.seek(position)
        key = HiveRecords.decode_node(cursor, self._hive.header_size())
        self._keys[position] = key
        return key

    def _decode(self, cursor):
        header_size = self._hive.header_size()
        root = self._decode_key(cursor, HiveRecords.block_position(self._hive.root_offset(), header_size))
        if not root.is_root():
            g_logger.warning("first key %s is not flagged as the hive root", root.name())

        stack = [(root, 0)]
        while stack:
            key, depth = stack.pop()
            positions = HiveRecords.read_subkey_positions(cursor, key, header_size)
            if positions and depth + 1 > self._max_depth:
                raise HiveRecords.DepthExceededException("%s is nested deeper than %d keys" %
                                                         (key.name(), self._max_depth))
            for position in positions:
                subkey = self._decode_key(cursor, position)
                key._add_subkey(subkey)
                stack.append((subkey, depth + 1))

        g_logger.debug("decoded %d keys from %s", len(self._keys), self._hive.hive_name() or "hive")
        return root


def open_hive(filelikeobject, max_depth=DEFAULT_MAX_DEPTH):
    """
    Read and decode a hive.
    Arguments:
    - `filelikeobject`: A file-like object with a .read() method.
          If a Python string is passed, it is interpreted as a filename,
          and the corresponding file is opened.
    - `max_depth`: See HiveTree.
    Raises FileNotFoundError if the path does not exist, and a ParseException
    (MalformedHiveException for a bad header) if the content is not a valid hive.
    """
    filepath = None
    try:
        buf = filelikeobject.read()
    except AttributeError:
        filepath = filelikeobject
        with open(filelikeobject, "rb") as f:
            buf = f.read()

    hive = HiveFile(buf, filepath=filepath)
    g_logger.debug("opened hive %s (%d bytes, format %d.%d)",
                   filepath or hive.hive_name(), len(hive), hive.major_version(), hive.minor_version())
    if not hive.validate_checksum():
        g_logger.warning("header checksum mismatch: stored 0x%x, calculated 0x%x",
                         hive.checksum(), hive.calculate_checksum())
    if not hive.validate_sequence_numbers():
        g_logger.warning("sequence numbers differ (%d != %d), the hive may be dirty",
                         hive.hive_sequence1(), hive.hive_sequence2())

    return HiveTree(hive, max_depth=max_depth)


def resolve_node(tree, path):
    """
    Return a NodeRecord by path, relative to the root key.
    Subkeys are separated by the backslash character ('\\') and
    matched exactly, case included. An empty segment ends the walk,
    so a trailing backslash may or may not be present.
    Raises PathNotFoundException naming the first missing segment.
    """
    key = tree.root()
    for segment in path.split(PATH_DELIMITER):
        if not segment:
            break

        subkey = key.subkey(segment)
        if subkey is None:
            raise PathNotFoundException(segment, path)
        key = subkey
    return key


def resolve_value(tree, path):
    """
    Return the ValueRecord at `path`, where the part after the last
    backslash is the value name, or None if the key has no such value.
    Raises PathNotFoundException if the key itself does not exist.
    """
    (key_path, _, name) = path.rpartition(PATH_DELIMITER)
    return resolve_node(tree, key_path).value(name)
