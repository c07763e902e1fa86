import io
import struct

import pytest

from HiveParse import Hive
from HiveParse import HiveRecords
from HiveParse.HiveRecords import RegBin, RegDWord, RegSZ

HBIN_HEADER_SIZE = 0x20
HBIN_SIZE = 0x1000

# 1970-01-01 00:00:00
EPOCH_FILETIME = 116444736000000000

LSA_CLASSES = {
    "JD": "00112233",
    "Skew1": "44556677",
    "GBG": "8899aabb",
    "Data": "ccddeeff",
}
EXPECTED_BOOT_KEY = bytes(bytearray.fromhex("88554422bb99dd33006611cceeaaff77"))


class HiveBuilder(object):
    """
    Assembles a hive in memory, one cell at a time. Cells are written
    bottom-up: a key's subkeys and values must exist before the key.
    All offsets returned are relative to the end of the 4k header.
    """
    def __init__(self, hive_name="SYSTEM"):
        self._bins = bytearray(b"hbin" + b"\x00" * (HBIN_HEADER_SIZE - 4))
        self.hive_name = hive_name
        self.magic = b"regf"
        self.sequence = (1, 1)

    def cell(self, payload):
        offset = len(self._bins)
        size = 4 + len(payload)
        size += (-size) % 8
        self._bins += struct.pack("<i", -size) + payload
        self._bins += b"\x00" * (size - 4 - len(payload))
        return offset

    def value(self, name, data, data_type=RegBin, data_length=None):
        if data_length is None:
            data_length = len(data)
        if data_length < 5:
            field = data.ljust(4, b"\x00")[:4]
        else:
            field = struct.pack("<i", self.cell(data))
        name = name.encode("utf-8")
        return self.cell(struct.pack("<2sHi4siHH", b"vk", len(name), data_length, field, data_type, 1, 0) + name)

    def leaf(self, subkeys, kind=b"lf"):
        payload = kind + struct.pack("<H", len(subkeys))
        for k in subkeys:
            payload += struct.pack("<i", k) + b"\x00" * 4
        return self.cell(payload)

    def root_index(self, leaves):
        return self.cell(b"ri" + struct.pack("<H", len(leaves)) + b"".join(struct.pack("<i", l) for l in leaves))

    def key(self, name, subkeys=(), values=(), classname=None, index="lf", ri_chunk=2,
            flags=HiveRecords.KEY_COMP_NAME, subkey_count=None, value_count=None,
            subkey_list=None, values_list=None, timestamp=EPOCH_FILETIME):
        if subkey_list is None:
            if not subkeys:
                subkey_list = -1
            elif index == "ri":
                chunks = [subkeys[i:i + ri_chunk] for i in range(0, len(subkeys), ri_chunk)]
                subkey_list = self.root_index([self.leaf(c) for c in chunks])
            else:
                subkey_list = self.leaf(subkeys, index.encode("ascii"))
        if subkey_count is None:
            subkey_count = len(subkeys)

        if values_list is None:
            values_list = self.cell(b"".join(struct.pack("<i", v) for v in values)) if values else -1
        if value_count is None:
            value_count = len(values)

        classname_offset, classname_length = -1, 0
        if classname is not None:
            classname_offset, classname_length = self.cell(classname), len(classname)

        name = name.encode("utf-8")
        payload = struct.pack("<2sHq10i", b"nk", flags, timestamp,
                              0, 0, subkey_count, 0, subkey_list, -1,
                              value_count, values_list, -1, classname_offset)
        payload += b"\x00" * 20
        payload += struct.pack("<hh", len(name), classname_length) + name
        offset = self.cell(payload)

        for k in subkeys:
            struct.pack_into("<i", self._bins, k + 4 + 0x10, offset)
        return offset

    def set_subkeys(self, key, subkey_list, subkey_count):
        struct.pack_into("<i", self._bins, key + 4 + 0x14, subkey_count)
        struct.pack_into("<i", self._bins, key + 4 + 0x1C, subkey_list)

    def build(self, root):
        bins = self._bins + b"\x00" * ((-len(self._bins)) % HBIN_SIZE)
        struct.pack_into("<II", bins, 0x4, 0, len(bins))

        header = bytearray(HiveRecords.HEADER_SIZE)
        header[0:4] = self.magic
        struct.pack_into("<IIQ", header, 0x4, self.sequence[0], self.sequence[1], EPOCH_FILETIME)
        struct.pack_into("<IIIIiII", header, 0x14, 1, 5, 0, 1, root, len(bins), 1)
        name = self.hive_name.encode("utf-16le")[:64]
        header[0x30:0x30 + len(name)] = name

        xsum = 0
        for idx in range(0, 0x1FC, 4):
            xsum ^= struct.unpack_from("<I", header, idx)[0]
        struct.pack_into("<I", header, 0x1FC, xsum)
        return bytes(header + bins)


def position(offset):
    return HiveRecords.block_position(offset)


def build_system_hive(builder, control_set=1, classes=LSA_CLASSES, decoy=True):
    lsa_keys = [builder.key(n, classname=classes[n].encode("utf-16le")) for n in ("JD", "Skew1", "GBG", "Data")]
    lsa = builder.key("Lsa", subkeys=lsa_keys, index="lh")

    product_policy = builder.value("ProductPolicy", bytes(bytearray(range(100))))
    product_options = builder.key("ProductOptions", values=[product_policy])
    tz_name = builder.value("TimeZoneKeyName", "W. Europe Standard Time".encode("utf-16le"), RegSZ)
    tz = builder.key("TimeZoneInformation", values=[tz_name])
    control = builder.key("Control", subkeys=[lsa, product_options, tz], index="ri")
    control_sets = [builder.key("ControlSet%03d" % control_set, subkeys=[control])]

    if decoy:
        other = control_set + 1
        decoy_lsa = [builder.key(n, classname="ffffffff".encode("utf-16le")) for n in ("JD", "Skew1", "GBG", "Data")]
        decoy_control = builder.key("Control", subkeys=[builder.key("Lsa", subkeys=decoy_lsa)])
        control_sets.append(builder.key("ControlSet%03d" % other, subkeys=[decoy_control]))

    select = builder.key("Select", values=[
        builder.value("Current", struct.pack("<i", control_set), RegDWord),
        builder.value("Default", struct.pack("<i", control_set), RegDWord),
        builder.value("", b"abc"),
    ])
    return builder.key("ROOT", subkeys=control_sets + [select], flags=HiveRecords.ROOT_KEY_FLAGS)


@pytest.fixture
def builder():
    return HiveBuilder()


@pytest.fixture
def system_hive(builder):
    return builder.build(build_system_hive(builder))


@pytest.fixture
def system_hive_path(system_hive, tmp_path):
    path = tmp_path / "SYSTEM"
    path.write_bytes(system_hive)
    return str(path)


@pytest.fixture
def system_tree(system_hive):
    return Hive.open_hive(io.BytesIO(system_hive))
