#!/usr/bin/python3
#
# 86Box          A hypervisor and IBM PC system emulator that specializes in
#                running old operating systems and software designed for IBM
#                PC systems and compatibles from 1981 through fairly recent
#                system designs based on the PCI bus.
#
#                This file is part of the 86Box BIOS Tools distribution.
#
#                LHA -lh5- decompressor.
#
#
#
# Authors:       RichardG, <richardg867@gmail.com>
#
#                Copyright 2021 RichardG.
#

DICBIT = 13 # 8 KB dictionary
THRESHOLD = 3 # shortest match
NC = 256 + 256 - THRESHOLD + 2 # literals + match lengths
NP = DICBIT + 1
NT = 16 + 3
CBIT = 9
PBIT = 4
TBIT = 5
MAX_CODE_LENGTH = 16


class LH5Error(Exception):
	"""Raised on a malformed -lh5- stream."""
	pass


class _BitReader:
	"""MSB-first bit reader. Reading past the end yields zero bits."""

	def __init__(self, data):
		self.data = data
		self.pos = 0
		self.buf = 0
		self.count = 0

	def read(self, n):
		while self.count < n:
			if self.pos < len(self.data):
				byte = self.data[self.pos]
			else:
				byte = 0
			self.pos += 1
			self.buf = (self.buf << 8) | byte
			self.count += 8
		self.count -= n
		ret = (self.buf >> self.count) & ((1 << n) - 1)
		self.buf &= (1 << self.count) - 1
		return ret


class _HuffmanTable:
	"""Canonical Huffman decoding table built from a list of code lengths.
	   A table with a constant symbol consumes no bits."""

	def __init__(self, lengths=None, constant=None):
		self.constant = constant
		self.codes = {}
		if lengths is None:
			return

		# Assign codes in order of length, then symbol.
		code = 0
		for length in range(1, MAX_CODE_LENGTH + 1):
			for symbol, symbol_length in enumerate(lengths):
				if symbol_length == length:
					self.codes[(length, code)] = symbol
					code += 1
			if code > (1 << length):
				raise LH5Error('Bad table')
			code <<= 1

	def decode(self, reader):
		if self.constant is not None:
			return self.constant

		code = 0
		for length in range(1, MAX_CODE_LENGTH + 1):
			code = (code << 1) | reader.read(1)
			symbol = self.codes.get((length, code))
			if symbol is not None:
				return symbol

		raise LH5Error('Bad code')


def _read_pt_len(reader, nn, nbit, i_special):
	n = reader.read(nbit)
	if n == 0:
		return _HuffmanTable(constant=reader.read(nbit))
	elif n > nn:
		raise LH5Error('Bad table')

	lengths = [0] * nn
	i = 0
	while i < n:
		c = reader.read(3)
		if c == 7:
			while reader.read(1):
				c += 1
				if c > MAX_CODE_LENGTH:
					raise LH5Error('Bad table')
		lengths[i] = c
		i += 1

		# Run of zero lengths after the third entry of the T table.
		if i == i_special:
			c = reader.read(2)
			while c > 0 and i < nn:
				lengths[i] = 0
				i += 1
				c -= 1

	return _HuffmanTable(lengths)

def _read_c_len(reader, pt_table):
	n = reader.read(CBIT)
	if n == 0:
		return _HuffmanTable(constant=reader.read(CBIT))
	elif n > NC:
		raise LH5Error('Bad table')

	lengths = [0] * NC
	i = 0
	while i < n:
		c = pt_table.decode(reader)
		if c <= 2:
			# Run of zero lengths.
			if c == 0:
				c = 1
			elif c == 1:
				c = reader.read(4) + 3
			else:
				c = reader.read(CBIT) + 20
			if i + c > NC:
				raise LH5Error('Bad table')
			i += c
		else:
			lengths[i] = c - 2
			i += 1

	return _HuffmanTable(lengths)


def decode(src, dest):
	"""Decode the -lh5- stream in src into dest, a bytearray (or writable
	   buffer) pre-sized to the expected decompressed length. Raises LH5Error
	   on a malformed stream, leaving dest filled up to that point."""

	reader = _BitReader(src)
	dest_len = len(dest)
	pos = 0
	block_size = 0
	c_table = p_table = None

	while pos < dest_len:
		# Read a new block's tables if the current block is exhausted.
		if block_size == 0:
			block_size = reader.read(16)
			pt_table = _read_pt_len(reader, NT, TBIT, 3)
			c_table = _read_c_len(reader, pt_table)
			p_table = _read_pt_len(reader, NP, PBIT, -1)
		block_size = (block_size - 1) & 0xffff

		c = c_table.decode(reader)
		if c < 256:
			# Literal byte.
			dest[pos] = c
			pos += 1
		else:
			# Match: copy from earlier output.
			length = c - (256 - THRESHOLD)
			distance = p_table.decode(reader)
			if distance != 0:
				distance = (1 << (distance - 1)) + reader.read(distance - 1)
			src_pos = pos - distance - 1
			if src_pos < 0:
				raise LH5Error('Match distance {0} out of range at {1}'.format(distance + 1, pos))
			while length > 0 and pos < dest_len:
				dest[pos] = dest[src_pos]
				pos += 1
				src_pos += 1
				length -= 1

	return dest
