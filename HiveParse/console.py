#!/usr/bin/python

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
#
#   Print the root key and the boot key of a SYSTEM hive.
#
#   hiveparse <registry file> [--key <path>]
#
import sys
import logging
import binascii

import argparse
from HiveParse import Hive
from HiveParse import HiveRecords
from HiveParse import BootKey


g_logger = logging.getLogger("hiveparse")

EXIT_OK = 0
EXIT_PARSE_ERROR = 1
EXIT_UNAVAILABLE = 2


def format_key(key):
    return "-".join("%02X" % b for b in bytearray(key))


def print_key(tree, path):
    key = Hive.resolve_node(tree, path)
    print("%s (%s)" % (tree.path(key) or key.name(), key.timestamp().isoformat()))
    for subkey in key.subkeys():
        print("  [%s]" % (subkey.name()))
    for value in key.values():
        print("  %s : %s = %s" % (value.name(), value.data_type_str(),
                                  binascii.hexlify(value.data()).decode("ascii")))


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Print the root key name and the boot key of a Windows Registry hive")
    parser.add_argument("registry_hive", type=str,
                        help="Path to the Windows Registry hive to process")
    parser.add_argument("--key", type=str, dest="key_path", default=None,
                        help="List the subkeys and values of this key instead")
    parser.add_argument("--max-depth", type=int, dest="max_depth", default=Hive.DEFAULT_MAX_DEPTH,
                        help="Key levels to accept below the root")
    parser.add_argument("-v", action="store_true", dest="verbose",
                        help="Enable verbose output")
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.INFO)

    try:
        tree = Hive.open_hive(args.registry_hive, max_depth=args.max_depth)
    except FileNotFoundError:
        g_logger.error("no such file: %s", args.registry_hive)
        return EXIT_PARSE_ERROR
    except OSError as e:
        g_logger.error("cannot read %s: %s", args.registry_hive, e)
        return EXIT_PARSE_ERROR
    except HiveRecords.ParseException as e:
        g_logger.error("failed to parse %s: %s", args.registry_hive, e)
        return EXIT_PARSE_ERROR

    if args.key_path is not None:
        try:
            print_key(tree, args.key_path)
        except Hive.PathNotFoundException as e:
            g_logger.error("%s", e)
            return EXIT_UNAVAILABLE
        return EXIT_OK

    print("The root key's name is: %s" % (tree.root().name()))
    try:
        boot_key = BootKey.derive_boot_key(tree)
    except BootKey.BootKeyUnavailableException as e:
        g_logger.error("doesn't appear to be a SYSTEM hive: %s", e)
        return EXIT_UNAVAILABLE

    print("Boot key: %s" % (format_key(boot_key)))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
