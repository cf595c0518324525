"""
arcstat.io

Structure file formats.

Submodules
----------
base    StructureCodec interface, extension registry, read/write helpers
arc     LASP / BIOSYM .arc archives
xyz     XYZ and extended XYZ via ase.io
lasp    lasp.out scan for unconverged structures
"""
