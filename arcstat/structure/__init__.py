"""
arcstat.structure

Structure data model and element data.

Submodules
----------
block       Atom, CellParameters and StructureBlock
periodic    ElementRadiusTable built from ASE periodic data
"""
