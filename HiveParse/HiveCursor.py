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

from .HiveRecords import OutOfBoundsException


class HiveCursor(object):
    """
    A bounds-checked, random-access reader over a byte string.
    Every read advances the cursor past the bytes it consumed.
    All integers are little-endian.
    """
    def __init__(self, buf, position=0):
        """
        Constructor.
        Arguments:
        - `buf`: Byte string to read from.
        - `position`: The initial absolute position.
        """
        self._buf = buf
        self._pos = 0
        self.seek(position)

    def __len__(self):
        return len(self._buf)

    def __str__(self):
        return "HiveCursor at 0x%x of 0x%x" % (self._pos, len(self._buf))

    def tell(self):
        """
        Get the current absolute position.
        """
        return self._pos

    def seek(self, position):
        """
        Move to an absolute position. The end of the buffer is a valid
        position, anything outside of [0, len] is not.
        """
        if position < 0 or position > len(self._buf):
            raise OutOfBoundsException("seek to 0x%x outside of 0x%x bytes" % (position, len(self._buf)))
        self._pos = position

    def skip(self, length):
        self.seek(self._pos + length)

    def read_bytes(self, length):
        """
        Read `length` bytes from the current position.
        """
        if length < 0:
            raise OutOfBoundsException("negative read length %d at 0x%x" % (length, self._pos))
        end = self._pos + length
        if end > len(self._buf):
            raise OutOfBoundsException("read of %d bytes at 0x%x overruns 0x%x bytes" %
                                       (length, self._pos, len(self._buf)))
        ret = bytes(self._buf[self._pos:end])
        self._pos = end
        return ret

    def _unpack(self, fmt):
        size = struct.calcsize(fmt)
        return struct.unpack(fmt, self.read_bytes(size))[0]

    def read_int16(self):
        return self._unpack(str("<h"))

    def read_uint16(self):
        return self._unpack(str("<H"))

    def read_int32(self):
        return self._unpack(str("<i"))

    def read_uint32(self):
        return self._unpack(str("<I"))

    def read_int64(self):
        return self._unpack(str("<q"))
