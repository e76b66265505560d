#!/usr/bin/python3
#
# 86Box          A hypervisor and IBM PC system emulator that specializes in
#                running old operating systems and software designed for IBM
#                PC systems and compatibles from 1981 through fairly recent
#                system designs based on the PCI bus.
#
#                This file is part of the 86Box BIOS Tools distribution.
#
#                Phoenix BIOS on-image structures.
#
#
#
# Authors:       RichardG, <richardg867@gmail.com>
#
#                Copyright 2021 RichardG.
#
import struct
from . import util

MODULE_SIGNATURE = b'\x00\x31\x31'

# Fields read from the BCPSYS record.
BCPSYS_NAME = b'BCPSYS'
BCPSYS_DATE_OFFSET = 0x0f
BCPSYS_TIME_OFFSET = 0x18
BCPSYS_VERSION_OFFSET = 0x37
BCPSYS_MODULES_OFFSET = 0x77


def read_u32(data, offset):
	"""Read a little-endian 32-bit value, or None if it lies outside data."""
	if offset < 0 or offset + 4 > len(data):
		return None
	value, = struct.unpack('<I', data[offset:offset + 4])
	return value


class IdentifierRecord:
	"""BCP identifier record: 6-byte name, flags and total length."""

	_format = '<6sHH'
	size = struct.calcsize(_format)

	def __init__(self, offset, name, flags, length):
		self.offset = offset
		self.name = name
		self.flags = flags
		self.length = length

	@classmethod
	def parse(cls, data, offset):
		"""Decode the record at offset, or return None if it doesn't fit."""
		if offset < 0 or offset + cls.size > len(data):
			return None
		return cls(offset, *struct.unpack(cls._format, data[offset:offset + cls.size]))

	def read_field(self, data, offset, length=8):
		"""Read a NUL-trimmed string field at the given displacement."""
		start = self.offset + offset
		return util.read_string(data[start:start + length])

	def __repr__(self):
		return '<{0} flags {1:04X} length {2} @ {3:05X}>'.format(self.name.decode('cp437', 'ignore'), self.flags, self.length, self.offset)


class ModuleHeader:
	"""Phoenix module header. packed2 and explen2 are carried as-is; the
	   extractor never reads them."""

	_format = '<I3sBBBBHHIIII'
	size = struct.calcsize(_format)

	def __init__(self, offset, previous, signature, id, type, head_len, compression, load_offset, load_segment, explen1, packed1, packed2, explen2):
		self.offset = offset
		self.previous = previous
		self.signature = signature
		self.id = id
		self.type = type
		self.head_len = head_len
		self.compression = compression
		self.load_offset = load_offset
		self.load_segment = load_segment
		self.explen1 = explen1
		self.packed1 = packed1
		self.packed2 = packed2
		self.explen2 = explen2

	@classmethod
	def parse(cls, data, offset):
		"""Decode the header at offset, or return None if it doesn't fit."""
		if offset < 0 or offset + cls.size > len(data):
			return None
		return cls(offset, *struct.unpack(cls._format, data[offset:offset + cls.size]))

	@property
	def valid_signature(self):
		return self.signature == MODULE_SIGNATURE

	@property
	def data_offset(self):
		"""Start of the payload for the compressed layouts."""
		return self.offset + self.head_len + 4

	@property
	def end_offset(self):
		return self.data_offset + self.packed1

	def __repr__(self):
		return '<module type {0:02X} id {1} compression {2} packed {3} expanded {4} previous {5:08X} @ {6:05X}>'.format(
			self.type, self.id, self.compression, self.packed1, self.explen1, self.previous, self.offset
		)
