#!/usr/bin/python3
#
# 86Box          A hypervisor and IBM PC system emulator that specializes in
#                running old operating systems and software designed for IBM
#                PC systems and compatibles from 1981 through fairly recent
#                system designs based on the PCI bus.
#
#                This file is part of the 86Box BIOS Tools distribution.
#
#                Phoenix BIOS module extractor classes.
#
#
#
# Authors:       RichardG, <richardg867@gmail.com>
#
#                Copyright 2021 RichardG.
#
import os, re, sys
from . import lh5, modules, structures, util

# Largest expanded module size accepted.
MAX_EXPANDED_SIZE = 16777216


class PhoenixError(Exception):
	"""Base class for extraction errors."""
	pass

class AnchorNotFound(PhoenixError):
	"""No BCPSYS record in the identifier chain. Fatal."""
	pass

class InvalidModulesOffset(PhoenixError):
	"""BCPSYS points to no module chain. Fatal."""
	pass

class UnsupportedFormat(PhoenixError):
	"""Image variant which can't be extracted. Fatal."""
	pass

class InvalidSignature(PhoenixError):
	"""Module header signature mismatch. The module is skipped."""
	pass

class ModuleOverrun(PhoenixError):
	"""Module header or payload extends past the image. The module is skipped."""
	pass

class FileCreateFailed(PhoenixError):
	"""Output file could not be created. The module is skipped."""
	pass

class FileWriteFailed(PhoenixError):
	"""Output file could not be written. The module is skipped."""
	pass

class ModuleTooLarge(PhoenixError):
	"""Expanded size too large to allocate. The module is skipped."""
	pass

class UnknownCompression(PhoenixError):
	"""Unknown compression type. The raw payload is salvaged."""
	pass


class ExtractedModule:
	"""Outcome of processing a single module in the chain."""

	def __init__(self, offset):
		self.offset = offset
		self.header = None
		self.previous = 0
		self.file_name = None
		self.file_path = None
		self.size = 0
		self.error = None

	def __repr__(self):
		return '<module @ {0:05X} -> {1} ({2} bytes){3}>'.format(self.offset, self.file_name, self.size, self.error and (' ' + self.error.__class__.__name__) or '')


class Extractor:
	def extract_image(self, data, product_offset, bcp_offset):
		"""Extract the given BIOS image. Returns True on success, False if the
		   image could not be extracted at all."""
		raise NotImplementedError()

	def debug_print(self, *args):
		"""Print a log line if debug output is enabled."""
		print(self.__class__.__name__ + ':', *args, file=sys.stderr)


class PhoenixExtractor(Extractor):
	"""Extract modules from a Phoenix BIOS 4.0x/FirstBIOS image."""

	def __init__(self, dest_dir='.', decoder=lh5.decode, *args, **kwargs):
		super().__init__(*args, **kwargs)

		self.dest_dir = dest_dir
		self.decoder = decoder
		self.modules = []
		self._file_names = set()

	def extract_image(self, data, product_offset, bcp_offset):
		print('Found Phoenix BIOS "{0}"'.format(util.read_string(data[product_offset:product_offset + 256])))

		# Find the module chain.
		try:
			offset = self.locate_anchor(data, bcp_offset)
		except (AnchorNotFound, InvalidModulesOffset) as e:
			print('Error:', e, file=sys.stderr)
			return False

		# Extract all modules. Errors on individual modules don't fail the image.
		self.modules = self.walk(data, offset)
		return True

	def find_bcpsys(self, data, bcp_offset):
		"""Walk the identifier records after BCPSEGMENT and return the
		   BCPSYS record. Raises AnchorNotFound if there is none."""
		offset = bcp_offset + 10
		while True:
			record = structures.IdentifierRecord.parse(data, offset)
			if not record or record.name[0] == 0:
				raise AnchorNotFound('Failed to locate BCPSYS offset.')
			self.debug_print('Identifier record:', record)

			if record.name == structures.BCPSYS_NAME:
				return record

			# A zero length would never move on.
			if record.length == 0:
				raise AnchorNotFound('Failed to locate BCPSYS offset.')
			offset += record.length

	def locate_anchor(self, data, bcp_offset):
		"""Find the BCPSYS record and return the offset of the newest module
		   header. Raises AnchorNotFound or InvalidModulesOffset."""
		record = self.find_bcpsys(data, bcp_offset)

		# Print some info.
		print('Version "{0}", created on {1} at {2}.'.format(
			record.read_field(data, structures.BCPSYS_VERSION_OFFSET),
			record.read_field(data, structures.BCPSYS_DATE_OFFSET),
			record.read_field(data, structures.BCPSYS_TIME_OFFSET)
		))

		offset = structures.read_u32(data, record.offset + structures.BCPSYS_MODULES_OFFSET)
		if offset is None:
			raise InvalidModulesOffset('retrieved invalid Modules offset.')
		offset = util.mask_offset(offset, len(data))
		if not offset:
			raise InvalidModulesOffset('retrieved invalid Modules offset.')

		self.debug_print('Module chain starts at', hex(offset))
		return offset

	def walk(self, data, offset):
		"""Follow the module chain backwards from offset, extracting every
		   module. Returns a list of ExtractedModule objects."""
		ret = []
		visited = set()
		self._file_names = set()
		offset = util.mask_offset(offset, len(data))
		while offset:
			# Stop on a chain which loops back on itself.
			if offset in visited:
				print('Error: Module chain loops back to 0x{0:05X}'.format(offset), file=sys.stderr)
				break
			visited.add(offset)

			module = self.extract_module(data, offset)
			ret.append(module)
			offset = util.mask_offset(module.previous, len(data))

		return ret

	def extract_module(self, data, offset):
		"""Extract the module at offset. The returned ExtractedModule always
		   carries the previous module's offset if the header was readable,
		   even if this module failed."""
		module = ExtractedModule(offset)

		try:
			module.header = header = structures.ModuleHeader.parse(data, offset)
			if not header:
				raise ModuleOverrun('Module overruns buffer at 0x{0:05X}'.format(offset))
			self.debug_print(header)
			module.previous = header.previous

			self._extract_payload(data, header, module)
		except PhoenixError as e:
			print('Error:', e, file=sys.stderr)
			module.error = e

		return module

	def _extract_payload(self, data, header, module):
		if not header.valid_signature:
			raise InvalidSignature('Invalid module signature at 0x{0:05X}'.format(header.offset))
		if header.end_offset > len(data):
			raise ModuleOverrun('Module overruns buffer at 0x{0:05X}'.format(header.offset))
		if header.compression == 5 and header.explen1 > MAX_EXPANDED_SIZE:
			raise ModuleTooLarge('Module at 0x{0:05X} expands to {1} bytes'.format(header.offset, header.explen1))

		# Determine the output file name.
		module.file_name = modules.module_file_name(header.type, header.id)
		module.file_path = os.path.join(self.dest_dir, module.file_name)
		if module.file_name in self._file_names:
			print('Warning: overwriting {0} with module at 0x{1:05X}'.format(module.file_name, header.offset), file=sys.stderr)
		self._file_names.add(module.file_name)

		try:
			f = open(module.file_path, 'wb')
		except OSError as e:
			raise FileCreateFailed('unable to open {0}: {1}'.format(module.file_name, e.strerror))

		with f:
			if header.compression == 5:
				# LH5
				status = '0x{0:05X} ({1:6} bytes)   ->   {2}\t({3} bytes)'.format(header.data_offset, header.packed1, module.file_name, header.explen1)

				try:
					out_data = bytearray(header.explen1)
					self.decoder(data[header.data_offset:header.end_offset], out_data)
				except MemoryError:
					raise ModuleTooLarge('Not enough memory to expand {0} to {1} bytes'.format(module.file_name, header.explen1))
				except lh5.LH5Error as e:
					print('Error: LH5 decompression of {0} failed: {1}'.format(module.file_name, e), file=sys.stderr)
					module.error = e
			elif header.compression == 0:
				# Not compressed. The payload starts right after the header.
				start = header.offset + header.head_len
				status = '0x{0:05X} ({1:6} bytes)   ->   {2}'.format(start, header.packed1, module.file_name)

				out_data = data[start:start + header.packed1]
			else:
				# Salvage the raw data.
				module.error = UnknownCompression('Unsupported compression type for {0}: {1}'.format(module.file_name, header.compression))
				print(module.error, file=sys.stderr)
				status = '0x{0:05X} ({1:6} bytes)   ->   {2}\t({3} bytes)'.format(header.data_offset, header.packed1, module.file_name, header.explen1)

				out_data = data[header.data_offset:header.end_offset]

			try:
				f.write(out_data)
			except OSError as e:
				raise FileWriteFailed('unable to write {0}: {1}'.format(module.file_name, e.strerror))
			module.size = len(out_data)

		# Add load address if present.
		if header.load_offset or header.load_segment:
			if not header.compression:
				status += '\t\t'
			status += '\t [0x{0:04X}:0x{1:04X}]'.format(header.load_segment << 12, header.load_offset)

		# Print the whole line at once.
		print(status)


class PhoenixTrustedExtractor(Extractor):
	"""Phoenix TrustedCore images use an unknown compression scheme."""

	def extract_image(self, data, product_offset, bcp_offset):
		print('ERROR: Phoenix TrustedCore images are not supported.', file=sys.stderr)
		print('Feel free to RE the decompression routine :)')
		raise UnsupportedFormat('Phoenix TrustedCore images are not supported.')


# Product string -> extractor class, checked in order.
_product_patterns = [
	(re.compile(b'''Phoenix TrustedCore'''), PhoenixTrustedExtractor),
	(re.compile(b'''Phoenix FirstBIOS|PhoenixBIOS 4\\.0|Phoenix SecureCore'''), PhoenixExtractor),
]
_bcpsegment_pattern = re.compile(b'''BCPSEGMENT''')

def detect_phoenix(data):
	"""Identify a Phoenix BIOS image. Returns (extractor class, product
	   string offset, BCPSEGMENT offset), or None if not applicable."""
	bcpsegment = _bcpsegment_pattern.search(data)
	if not bcpsegment:
		return None

	for pattern, extractor_class in _product_patterns:
		product = pattern.search(data)
		if product:
			return extractor_class, product.start(0), bcpsegment.start(0)

	return None
