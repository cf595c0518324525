"""
arcstat

Analysis of LASP .arc structure archives: energy statistics, coordination,
interplanar spacings and RMSD-based substructure matching.

Subpackages
-----------
structure   Atom / StructureBlock data model and element radii
analysis    Coordination, planes, RMSD, substructure search, statistics
io          .arc and .xyz codecs, lasp.out scanning
"""

__version__ = "0.1.0"
