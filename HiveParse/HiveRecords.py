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
import datetime
import decimal
import binascii

g_logger = logging.getLogger("hiveparse")

# Constants
HEADER_SIZE = 0x1000
NO_OFFSET = -1
BLOCK_SIZE_FIELD = 0x4

# the name length word sits 68 bytes past the nk signature and flags
NK_NAME_LENGTH_OFFSET = 68

# inline value data is at most four bytes
VK_INLINE_LIMIT = 5

KEY_HIVE_ENTRY = 0x0004
KEY_NO_DELETE = 0x0008
KEY_COMP_NAME = 0x0020
ROOT_KEY_FLAGS = KEY_HIVE_ENTRY | KEY_NO_DELETE | KEY_COMP_NAME

DEFAULT_VALUE_NAME = "Default"

RegNone = 0x0000
RegSZ = 0x0001
RegExpandSZ = 0x0002
RegBin = 0x0003
RegDWord = 0x0004
RegBigEndian = 0x0005
RegLink = 0x0006
RegMultiSZ = 0x0007
RegResourceList = 0x0008
RegFullResourceDescriptor = 0x0009
RegResourceRequirementsList = 0x000A
RegQWord = 0x000B
RegFileTime = 0x0010

_TYPE_NAMES = {
    RegNone: "RegNone",
    RegSZ: "RegSZ",
    RegExpandSZ: "RegExpandSZ",
    RegBin: "RegBin",
    RegDWord: "RegDWord",
    RegBigEndian: "RegBigEndian",
    RegLink: "RegLink",
    RegMultiSZ: "RegMultiSZ",
    RegResourceList: "RegResourceList",
    RegFullResourceDescriptor: "RegFullResourceDescriptor",
    RegResourceRequirementsList: "RegResourceRequirementsList",
    RegQWord: "RegQWord",
    RegFileTime: "RegFileTime",
}


def parse_timestamp(ticks, resolution, epoch, mode=decimal.ROUND_HALF_EVEN):
    """
    Generalized function for parsing timestamps

    :param ticks: number of time units since the epoch
    :param resolution: number of time units per second
    :param epoch: the datetime of this timestamp's epoch
    :param mode: decimal rounding mode
    :return: datetime.datetime
    """
    # python's datetime.datetime supports microsecond precision
    datetime_resolution = int(1e6)

    us = int((decimal.Decimal(ticks * datetime_resolution) / decimal.Decimal(resolution)).quantize(1, mode))
    return epoch + datetime.timedelta(microseconds=us)


def parse_windows_timestamp(qword):
    """
    :param qword: number of 100-nanoseconds since 1601-01-01
    :return: datetime.datetime
    """
    return parse_timestamp(qword, int(1e7), datetime.datetime(1601, 1, 1))


class HiveException(Exception):
    """
    Base Exception class for hive file access.
    """
    def __init__(self, value):
        """
        Constructor.
        Arguments:
        - `value`: A string description.
        """
        super(HiveException, self).__init__()
        self._value = value

    def __str__(self):
        return "Hive Exception: %s" % (self._value)


class HiveStructureDoesNotExist(HiveException):
    """
    Raised when a lookup asks for a structure that the hive does not have.
    The already decoded tree stays usable.
    """
    def __str__(self):
        return "Hive Structure Does Not Exist Exception: %s" % (self._value)


class ParseException(HiveException):
    """
    An exception to be thrown during hive parsing, such as
    when an invalid header is encountered. A ParseException
    aborts the whole decode.
    """
    def __str__(self):
        return "Hive Parse Exception (%s)" % (self._value)


class MalformedHiveException(ParseException):
    """
    The file header is not a regf header.
    """
    def __str__(self):
        return "Malformed Hive Exception (%s)" % (self._value)


class MalformedRecordException(ParseException):
    """
    A record signature or a structural count did not match.
    Arguments:
    - `kind`: The record kind, for example "nk" or "child index signature".
    - `offset`: The absolute offset of the offending structure, if known.
    """
    def __init__(self, kind, offset=None):
        super(MalformedRecordException, self).__init__(kind)
        self.kind = kind
        self.offset = offset

    def __str__(self):
        if self.offset is None:
            return "Malformed Record Exception (%s)" % (self.kind)
        return "Malformed Record Exception (%s) at 0x%x" % (self.kind, self.offset)


class OutOfBoundsException(ParseException):
    """
    A read or seek left the hive content.
    """
    def __str__(self):
        return "Out Of Bounds Exception (%s)" % (self._value)


class CycleDetectedException(ParseException):
    """
    A child offset points back at a key that was already decoded.
    """
    def __str__(self):
        return "Cycle Detected Exception (%s)" % (self._value)


class DepthExceededException(ParseException):
    """
    The key tree is deeper than the configured maximum depth.
    """
    def __str__(self):
        return "Depth Exceeded Exception (%s)" % (self._value)


def block_position(offset, header_size=HEADER_SIZE):
    """
    Stored offsets are relative to the end of the file header and point at
    the size field of a cell. The record itself starts past that field.
    """
    return header_size + offset + BLOCK_SIZE_FIELD


def enter_block(cursor, offset, header_size=HEADER_SIZE):
    """
    Seek the cursor to the first byte of the record stored at `offset`.
    """
    cursor.seek(block_position(offset, header_size))


def _decode_name(buf):
    return buf.decode("utf-8", "replace")


class ValueRecord(object):
    """
    The ValueRecord holds one name-value pair. The data is kept as raw bytes;
    the type tag is not interpreted beyond naming it.
    """
    def __init__(self, offset, name, data_length, data_type, data, inline):
        self._offset = offset
        self._name = name
        self._data_length = data_length
        self._data_type = data_type
        self._data = data
        self._inline = inline

    def __str__(self):
        return "ValueRecord(Name: %s, Type: %s, Length: %d) at 0x%x" % (self._name,
                                                                         self.data_type_str(),
                                                                         len(self._data),
                                                                         self._offset)

    def __repr__(self):
        return 'ValueRecord(name="{0}", type="{1}")'.format(self._name, self.data_type_str())

    def offset(self):
        return self._offset

    def name(self):
        """
        Get the name of the value. The unnamed value is called "Default".
        """
        return self._name

    def data_length(self):
        """
        Get the declared data length as stored, a signed 32-bit integer.
        Values with the high bit set store their data inline and are negative here.
        """
        return self._data_length

    def data_type(self):
        return self._data_type

    def data_type_str(self):
        """
        Get the value data's type as a string
        """
        return _TYPE_NAMES.get(self._data_type, "Unknown type: %s" % (hex(self._data_type)))

    def is_inline(self):
        """
        Was the data stored in the record itself rather than in a data cell?
        """
        return self._inline

    def data(self):
        """
        Get the raw data bytes. Inline data is always the full four byte field.
        """
        return self._data


def decode_value(cursor, header_size=HEADER_SIZE):
    """
    Decode the vk record at the cursor position.
    """
    offset = cursor.tell()
    if cursor.read_bytes(2) != b"vk":
        raise MalformedRecordException("vk", offset)

    name_length = cursor.read_int16()
    data_length = cursor.read_int32()
    data_field = cursor.read_bytes(4)
    data_type = cursor.read_int32()
    cursor.skip(4)

    if name_length > 0:
        name = _decode_name(cursor.read_bytes(name_length))
    else:
        name = DEFAULT_VALUE_NAME

    if data_length < VK_INLINE_LIMIT:
        return ValueRecord(offset, name, data_length, data_type, data_field, True)

    data_offset = struct.unpack(str("<i"), data_field)[0]
    enter_block(cursor, data_offset, header_size)
    data = cursor.read_bytes(data_length)
    return ValueRecord(offset, name, data_length, data_type, data, False)


class NodeRecord(object):
    """
    The NodeRecord is one registry key. It owns its subkeys and values,
    in the order they are found on disk. The link to its parent is the
    absolute position of the parent record; the HiveTree resolves it.
    """
    def __init__(self, offset, **fields):
        self._offset = offset
        self._name = fields["name"]
        self._flags = fields["flags"]
        self._timestamp = fields["timestamp"]
        self._parent_offset = fields["parent_offset"]
        self._subkey_number = fields["subkey_number"]
        self._subkey_list_offset = fields["subkey_list_offset"]
        self._values_number = fields["values_number"]
        self._values_list_offset = fields["values_list_offset"]
        self._security_offset = fields["security_offset"]
        self._classname_offset = fields["classname_offset"]
        self._classname_data = fields["classname_data"]
        self._values = fields["values"]
        self._subkeys = []
        self._parent_position = None

    def __str__(self):
        classname = self.classname()
        if not self.has_classname():
            classname = "(none)"

        if self.is_root():
            return "Root NodeRecord(Class: %s, Name: %s) at 0x%x" % (classname, self._name, self._offset)
        return "NodeRecord(Class: %s, Name: %s) at 0x%x" % (classname, self._name, self._offset)

    def __repr__(self):
        return 'NodeRecord(name="{0}", offset=0x{1:x})'.format(self._name, self._offset)

    def offset(self):
        """
        Get the absolute position of the nk signature in the hive content.
        """
        return self._offset

    def name(self):
        return self._name

    def flags(self):
        return self._flags

    def is_root(self):
        """
        Is this the hive entry (root) key?
        """
        return self._flags & KEY_HIVE_ENTRY > 0

    def timestamp(self):
        """
        Get the last written timestamp as a Python datetime.
        """
        return self._timestamp

    def parent_offset(self):
        return self._parent_offset

    def parent_position(self):
        """
        Get the absolute position of the record that decoded this key,
        or None for the root key.
        """
        return self._parent_position

    def subkey_number(self):
        return self._subkey_number

    def subkey_list_offset(self):
        return self._subkey_list_offset

    def values_number(self):
        return self._values_number

    def values_list_offset(self):
        return self._values_list_offset

    def security_offset(self):
        return self._security_offset

    def classname_offset(self):
        return self._classname_offset

    def classname_length(self):
        return len(self._classname_data)

    def classname_data(self):
        """
        Get the raw classname bytes.
        """
        return self._classname_data

    def has_classname(self):
        return len(self._classname_data) > 0

    def classname(self):
        """
        If this has a classname, get it as a string. Otherwise, return the empty string.
        """
        return self._classname_data.decode("utf-16le", "replace").rstrip("\x00")

    def subkeys(self):
        return list(self._subkeys)

    def values(self):
        return list(self._values)

    def subkey(self, name):
        """
        Get the first subkey whose name is exactly `name`, or None.
        """
        for k in self._subkeys:
            if k.name() == name:
                return k
        return None

    def value(self, name):
        """
        Get the first value whose name is exactly `name`, or None.
        """
        for v in self._values:
            if v.name() == name:
                return v
        return None

    def _add_subkey(self, key):
        key._parent_position = self._offset
        self._subkeys.append(key)


def _decode_values(cursor, number, list_offset, header_size):
    values = []
    for i in range(0, number):
        cursor.seek(block_position(list_offset, header_size) + 4 * i)
        value_offset = cursor.read_int32()
        enter_block(cursor, value_offset, header_size)
        values.append(decode_value(cursor, header_size))
    return values


def decode_node(cursor, header_size=HEADER_SIZE):
    """
    Decode the nk record at the cursor position along with its values.
    Subkeys are attached afterwards by the caller, see read_subkey_positions().
    """
    offset = cursor.tell()
    if cursor.read_bytes(2) != b"nk":
        raise MalformedRecordException("nk", offset)

    flags = cursor.read_uint16()
    start = cursor.tell()

    filetime = cursor.read_int64()
    try:
        timestamp = parse_windows_timestamp(filetime)
    except (OverflowError, ValueError):
        raise MalformedRecordException("nk timestamp 0x%x" % (filetime), offset)
    cursor.skip(4)

    parent_offset = cursor.read_int32()
    subkey_number = cursor.read_int32()
    cursor.skip(4)
    subkey_list_offset = cursor.read_int32()
    cursor.skip(4)
    values_number = cursor.read_int32()
    values_list_offset = cursor.read_int32()
    security_offset = cursor.read_int32()
    classname_offset = cursor.read_int32()

    cursor.seek(start + NK_NAME_LENGTH_OFFSET)
    name_length = cursor.read_int16()
    classname_length = cursor.read_int16()
    name = _decode_name(cursor.read_bytes(name_length))

    if classname_length > 0 and classname_offset != NO_OFFSET:
        enter_block(cursor, classname_offset, header_size)
        classname_data = cursor.read_bytes(classname_length)
    else:
        classname_data = b""

    if values_list_offset == NO_OFFSET or values_number == NO_OFFSET:
        values_number = 0
    if subkey_number == NO_OFFSET:
        subkey_number = 0
    if values_number < 0:
        raise MalformedRecordException("value count", offset)

    values = []
    if values_number > 0:
        values = _decode_values(cursor, values_number, values_list_offset, header_size)

    return NodeRecord(offset,
                      name=name,
                      flags=flags,
                      timestamp=timestamp,
                      parent_offset=parent_offset,
                      subkey_number=subkey_number,
                      subkey_list_offset=subkey_list_offset,
                      values_number=values_number,
                      values_list_offset=values_list_offset,
                      security_offset=security_offset,
                      classname_offset=classname_offset,
                      classname_data=classname_data,
                      values=values)


def _is_leaf(id_):
    return id_ == b"lf" or id_ == b"lh"


def _read_leaf(cursor, header_size):
    """
    Read an lf/lh entry list, the cursor just past its signature.
    Entries are 8 bytes: the child offset and a name hint.
    Leaves the cursor just past the entry list.
    """
    count = cursor.read_int16()
    top = cursor.tell()

    positions = []
    for i in range(0, count):
        cursor.seek(top + 8 * i)
        child_offset = cursor.read_int32()
        cursor.skip(4)
        positions.append(block_position(child_offset, header_size))

    cursor.seek(top + 8 * max(count, 0))
    return positions


def read_subkey_positions(cursor, key, header_size=HEADER_SIZE):
    """
    Get the absolute positions of the nk records of the subkeys of `key`,
    in on-disk order. Handles the three subkey index encodings:
      - ri: root index, a list of offsets to lf/lh leaves
      - lf: fast leaf
      - lh: hash leaf
    """
    if key.subkey_list_offset() == NO_OFFSET:
        positions = []
    else:
        positions = _read_subkey_index(cursor, key, header_size)

    if len(positions) != key.subkey_number():
        raise MalformedRecordException("subkey count %d, index has %d" %
                                       (key.subkey_number(), len(positions)), key.offset())
    return positions


def _read_subkey_index(cursor, key, header_size):
    enter_block(cursor, key.subkey_list_offset(), header_size)
    list_position = cursor.tell()
    id_ = cursor.read_bytes(2)

    if id_ == b"ri":
        positions = []
        count = cursor.read_int16()
        for _ in range(0, count):
            slot = cursor.tell()
            leaf_offset = cursor.read_int32()

            enter_block(cursor, leaf_offset, header_size)
            leaf_position = cursor.tell()
            if not _is_leaf(cursor.read_bytes(2)):
                raise MalformedRecordException("ri leaf signature", leaf_position)
            positions.extend(_read_leaf(cursor, header_size))

            cursor.seek(slot + 4)
    elif _is_leaf(id_):
        positions = _read_leaf(cursor, header_size)
    else:
        g_logger.debug("unknown subkey list type 0x%s at 0x%x",
                       binascii.hexlify(id_).decode("ascii"), list_position)
        raise MalformedRecordException("child index signature", list_position)
    return positions
