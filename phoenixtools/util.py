#!/usr/bin/python3
#
# 86Box          A hypervisor and IBM PC system emulator that specializes in
#                running old operating systems and software designed for IBM
#                PC systems and compatibles from 1981 through fairly recent
#                system designs based on the PCI bus.
#
#                This file is part of the 86Box BIOS Tools distribution.
#
#                Utility functions.
#
#
#
# Authors:       RichardG, <richardg867@gmail.com>
#
#                Copyright 2021 RichardG.
#
import os, re, traceback

ascii_backspace_pattern = re.compile(b'''[\\x00-\\xFF]\\x08''')

error_log_path = 'phoenixtools_error.log'


def is_power_of_two(n):
	"""Returns True if n is a positive power of two."""
	return n > 0 and (n & (n - 1)) == 0

def log_traceback(*args):
	"""Log to phoenixtools_error.log, including any outstanding traceback."""

	elems = ['===[ While']
	for elem in args:
		elems.append(str(elem))
	elems.append(']===\n')
	output = ' '.join(elems)

	with open(error_log_path, 'a') as f:
		f.write(output)
		traceback.print_exc(file=f)

def mask_offset(offset, length):
	"""Reduce offset into a buffer of the given length. Power of two lengths
	   wrap around through a bitmask; anything else falls back to modulo."""
	if is_power_of_two(length):
		return offset & (length - 1)
	elif length > 0:
		return offset % length
	return 0

def read_string(data, terminator=b'\\x00', ascii_backspace=True):
	"""Read a terminated string (by NUL by default) from a bytes."""

	# Trim to terminator.
	match = re.search(terminator, data)
	if match:
		data = data[:match.start()]

	# Look for ASCII backspaces and apply them accordingly.
	if ascii_backspace:
		replaced = 1
		while replaced:
			data, replaced = ascii_backspace_pattern.subn(b'', data)

	# Decode as CP437.
	return data.decode('cp437', 'ignore')

def try_makedirs(dir_path):
	"""Try to create dir_path. Returns True if successful, False if not."""
	try:
		os.makedirs(dir_path)
	except OSError:
		pass
	return os.path.isdir(dir_path)
