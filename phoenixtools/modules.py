#!/usr/bin/python3
#
# 86Box          A hypervisor and IBM PC system emulator that specializes in
#                running old operating systems and software designed for IBM
#                PC systems and compatibles from 1981 through fairly recent
#                system designs based on the PCI bus.
#
#                This file is part of the 86Box BIOS Tools distribution.
#
#                Phoenix BIOS module type names.
#
#
#
# Authors:       RichardG, <richardg867@gmail.com>
#
#                Copyright 2021 RichardG.
#
import types

# Module type code -> output file name prefix.
MODULE_NAMES = types.MappingProxyType({
	ord('A'): 'acpi',
	ord('B'): 'bioscode',
	ord('C'): 'update',
	ord('D'): 'display',
	ord('E'): 'setup',
	ord('F'): 'font',
	ord('G'): 'decompcode',
	ord('I'): 'bootblock',
	ord('L'): 'logo',
	ord('M'): 'miser',
	ord('N'): 'rompilotload',
	ord('O'): 'network',
	ord('P'): 'rompilotinit',
	ord('R'): 'oprom',
	ord('S'): 'strings',
	ord('T'): 'template',
	ord('U'): 'user',
	ord('X'): 'romexec',
	ord('W'): 'wav',
	ord('H'): 'tcpa_H', # TCPA (Trusted Computing), USBKCLIB?
	ord('K'): 'tcpa_K', # TCPA (Trusted Computing), "AUTH"?
	ord('Q'): 'tcpa_Q', # TCPA (Trusted Computing), "SROM"?
	ord('<'): 'tcpa_<',
	ord('*'): 'tcpa_*',
	ord('?'): 'tcpa_?',
	ord('J'): 'SmartCardPAS',
})


def module_name(module_type):
	"""Returns the name for a module type code (int or single character),
	   or None if the type is not known."""
	if type(module_type) == str:
		module_type = ord(module_type)
	return MODULE_NAMES.get(module_type)

def module_file_name(module_type, module_id):
	"""Returns the output file name for a module of the given type and id.
	   Unknown types are named after their hex code."""
	name = module_name(module_type)
	if name:
		return '{0}_{1}.rom'.format(name, module_id)
	else:
		return '{0:02X}_{1}.rom'.format(module_type, module_id)
