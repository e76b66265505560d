#
# Synthetic Phoenix BIOS images and LH5 streams shared by the tests.
#
import struct

import pytest

from phoenixtools import extractors

IMAGE_SIZE = 0x10000
PRODUCT_OFFSET = 0x40
BCP_OFFSET = 0x100
MODULES_START = 0x1000
HEADER_FORMAT = '<I3sBBBBHHIIII'

MODULE_DEFAULTS = {
	'type': ord('B'),
	'id': 0,
	'compression': 0,
	'head_len': 27,
	'payload': b'',
	'packed': None,
	'explen': None,
	'previous': None,
	'signature': b'\x00\x31\x31',
	'load_offset': 0,
	'load_segment': 0,
	'offset': None,
}


def _identifier_record(name, length, anchor):
	record = bytearray(max(length, 10, name == b'BCPSYS' and 0x80 or 0))
	record[0:6] = name.ljust(6, b'\x00')
	record[6:10] = struct.pack('<HH', 0, length)
	if name == b'BCPSYS':
		record[0x0f:0x17] = b'04/15/99'
		record[0x18:0x20] = b'12:34:56'
		record[0x37:0x3f] = b'R6.0\x00\x00\x00\x00'
		record[0x77:0x7b] = struct.pack('<I', anchor)
	return record


def build_image(modules, size=IMAGE_SIZE, anchor=None, address_base=0, records=None, product=b'PhoenixBIOS 4.0 Release 6.0'):
	"""Build an image with the given modules chained oldest first.
	   Returns the image bytes and the header offset of each module."""
	data = bytearray(size)
	data[PRODUCT_OFFSET:PRODUCT_OFFSET + len(product) + 1] = product + b'\x00'
	data[BCP_OFFSET:BCP_OFFSET + 10] = b'BCPSEGMENT'

	offsets = []
	offset = MODULES_START
	previous = 0
	for module in modules:
		m = dict(MODULE_DEFAULTS, **module)
		payload = m['payload']
		packed = len(payload) if m['packed'] is None else m['packed']
		explen = len(payload) if m['explen'] is None else m['explen']
		if m['offset'] is not None:
			offset = m['offset']
		if m['previous'] is None:
			m['previous'] = previous and (previous | address_base)

		data[offset:offset + 31] = struct.pack(HEADER_FORMAT,
			m['previous'], m['signature'], m['id'], m['type'], m['head_len'], m['compression'],
			m['load_offset'], m['load_segment'], explen, packed, 0, 0
		)
		start = offset + m['head_len'] + (m['compression'] and 4 or 0)
		data[start:start + len(payload)] = payload

		offsets.append(offset)
		previous = offset
		offset = (start + len(payload) + 0x1f) & ~0x0f

	if anchor is None:
		anchor = previous and (previous | address_base)
	if records is None:
		records = [(b'BCPCPU', 0x20), (b'BCPSYS', 0x80)]

	pos = BCP_OFFSET + 10
	for name, length in records:
		record = _identifier_record(name, length, anchor)[:size - pos]
		data[pos:pos + len(record)] = record
		pos += length

	return bytes(data), offsets


class BitWriter:
	def __init__(self):
		self.bits = []

	def write(self, value, n):
		for i in reversed(range(n)):
			self.bits.append((value >> i) & 1)

	def getvalue(self):
		bits = self.bits + [0] * (-len(self.bits) % 8)
		return bytes(int(''.join(str(b) for b in bits[i:i + 8]), 2) for i in range(0, len(bits), 8))


def lh5_stream(tokens):
	"""Encode a single -lh5- block. Tokens are literal byte values or
	   (length, distance) matches. Every literal/length symbol gets a 9-bit
	   code equal to its value, every distance bit count a 4-bit code."""
	w = BitWriter()
	w.write(len(tokens), 16)

	# T table: constant symbol 11, so every C code length is 9.
	w.write(0, 5)
	w.write(11, 5)

	# C table: all 510 symbols.
	w.write(510, 9)

	# P table: 14 symbols of length 4.
	w.write(14, 4)
	for _ in range(14):
		w.write(4, 3)

	for token in tokens:
		if isinstance(token, int):
			w.write(token, 9)
		else:
			length, distance = token
			w.write(length + 253, 9)
			d = distance - 1
			j = d.bit_length()
			w.write(j, 4)
			if j > 1:
				w.write(d - (1 << (j - 1)), j - 1)

	return w.getvalue()


def _canonical_codes(lengths):
	"""Map symbol -> (code, length) for a list of code lengths."""
	codes = {}
	code = 0
	for length in range(1, 17):
		for symbol, symbol_length in enumerate(lengths):
			if symbol_length == length:
				codes[symbol] = (code, length)
				code += 1
		code <<= 1
	return codes

def _complete_lengths(symbols, count):
	"""Code lengths of a complete prefix code over the given symbols."""
	lengths = [0] * count
	symbols = sorted(symbols)
	if len(symbols) == 1:
		lengths[symbols[0]] = 1
		return lengths
	depth = (len(symbols) - 1).bit_length()
	shallow = (1 << depth) - len(symbols)
	for index, symbol in enumerate(symbols):
		lengths[symbol] = index < shallow and depth - 1 or depth
	return lengths

def _write_pt_len(w, lengths, nbit, i_special):
	n = max(i for i, length in enumerate(lengths) if length) + 1
	w.write(n, nbit)
	i = 0
	while i < n:
		length = lengths[i]
		i += 1
		if length < 7:
			w.write(length, 3)
		else:
			# 7, then one extra 1 bit per length above 7, then a 0 bit.
			w.write(7, 3)
			w.write(((1 << (length - 7)) - 1) << 1, length - 6)
		if i == i_special:
			zeros = 0
			while zeros < 3 and i + zeros < n and lengths[i + zeros] == 0:
				zeros += 1
			w.write(zeros, 2)
			i += zeros

def _c_len_symbols(c_lengths):
	"""Convert C code lengths into (T symbol, extra value, extra bits) items."""
	n = max(i for i, length in enumerate(c_lengths) if length) + 1
	ret = []
	i = 0
	while i < n:
		if c_lengths[i]:
			ret.append((c_lengths[i] + 2, 0, 0))
			i += 1
			continue

		run = 0
		while i + run < n and c_lengths[i + run] == 0:
			run += 1
		i += run
		if run <= 2:
			ret += [(0, 0, 0)] * run
		elif run <= 18:
			ret.append((1, run - 3, 4))
		elif run == 19:
			ret += [(0, 0, 0), (1, 15, 4)]
		else:
			ret.append((2, run - 20, 9))
	return n, ret

def lh5_blocks(blocks):
	"""Encode -lh5- blocks with explicit Huffman tables. Each block is
	   (tokens, c_lengths, p_lengths), the length arguments being dicts of
	   symbol -> code length. T table lengths are derived from the C table."""
	w = BitWriter()
	for tokens, c_lengths, p_lengths in blocks:
		c_list = [c_lengths.get(i, 0) for i in range(510)]
		p_list = [p_lengths.get(i, 0) for i in range(14)]
		n, c_items = _c_len_symbols(c_list)
		t_list = _complete_lengths(set(item[0] for item in c_items), 19)
		t_codes = _canonical_codes(t_list)
		c_codes = _canonical_codes(c_list)
		p_codes = _canonical_codes(p_list)

		w.write(len(tokens), 16)
		_write_pt_len(w, t_list, 5, 3)
		w.write(n, 9)
		for symbol, extra, extra_bits in c_items:
			w.write(*t_codes[symbol])
			if extra_bits:
				w.write(extra, extra_bits)
		_write_pt_len(w, p_list, 4, -1)

		for token in tokens:
			if isinstance(token, int):
				w.write(*c_codes[token])
			else:
				length, distance = token
				w.write(*c_codes[length + 253])
				d = distance - 1
				j = d.bit_length()
				w.write(*p_codes[j])
				if j > 1:
					w.write(d - (1 << (j - 1)), j - 1)

	return w.getvalue()


@pytest.fixture
def image():
	return build_image


@pytest.fixture
def lh5_encode():
	return lh5_stream


@pytest.fixture
def extractor(tmp_path):
	ret = extractors.PhoenixExtractor(str(tmp_path))
	ret.debug_print = lambda *args: None
	return ret


@pytest.fixture
def lh5_encode_tables():
	return lh5_blocks
