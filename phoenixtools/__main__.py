#!/usr/bin/python3 -u
#
# 86Box          A hypervisor and IBM PC system emulator that specializes in
#                running old operating systems and software designed for IBM
#                PC systems and compatibles from 1981 through fairly recent
#                system designs based on the PCI bus.
#
#                This file is part of the 86Box BIOS Tools distribution.
#
#                Phoenix BIOS module extractor program.
#
#
#
# Authors:       RichardG, <richardg867@gmail.com>
#
#                Copyright 2021 RichardG.
#

import getopt, sys
from . import extractors, util


def extract(file_path, options):
	"""Main function for extraction."""

	# Read the whole image.
	try:
		with open(file_path, 'rb') as f:
			data = f.read()
	except OSError as e:
		print('Could not read {0}: {1}'.format(file_path, e.strerror), file=sys.stderr)
		return 2

	# Identify the image.
	detected = extractors.detect_phoenix(data)
	if not detected:
		print('No Phoenix BIOS found in {0}'.format(file_path), file=sys.stderr)
		return 3
	extractor_class, product_offset, bcp_offset = detected
	if options['trusted']:
		extractor_class = extractors.PhoenixTrustedExtractor

	# Create destination directory.
	if not util.try_makedirs(options['output']):
		print('Could not create output directory {0}'.format(options['output']), file=sys.stderr)
		return 2

	# Set up extractor.
	if extractor_class == extractors.PhoenixExtractor:
		extractor = extractor_class(options['output'])
	else:
		extractor = extractor_class()

	# Disable debug mode on the extractor.
	if not options['debug']:
		extractor.debug_print = lambda *args: None

	# Run the extractor.
	try:
		if extractor.extract_image(data, product_offset, bcp_offset):
			return 0
	except extractors.UnsupportedFormat:
		pass
	except Exception:
		# Log an error.
		util.log_traceback('extracting', file_path)
	return 4


def main():
	# Set default options.
	options = {
		'debug': False,
		'output': '.',
		'trusted': False,
	}

	# Parse arguments.
	try:
		args, remainder = getopt.gnu_getopt(sys.argv[1:], 'do:t', ['debug', 'output=', 'trusted'])
	except getopt.GetoptError as e:
		print(e, file=sys.stderr)
		args, remainder = [], []
	for opt, arg in args:
		if opt in ('-d', '--debug'):
			options['debug'] = True
		elif opt in ('-o', '--output'):
			options['output'] = arg
		elif opt in ('-t', '--trusted'):
			options['trusted'] = True

	if len(remainder) > 0:
		return extract(remainder[0], options)

	# Print usage.
	usage = '''
Usage: python3 -m phoenixtools [-d] [-o directory] [-t] image_file

       Extract the modules of a Phoenix BIOS image.

       -d    Enable debug output.
       -o    Write extracted modules to the given directory (default: current).
       -t    Treat the image as Phoenix TrustedCore.
'''
	print(usage, file=sys.stderr)
	return 1

if __name__ == '__main__':
	sys.exit(main())
