"""
arcstat.analysis

Geometric and statistical analysis of structure blocks.

Submodules
----------
geometry      Distances, angles and the Plane type
coordination  Radius-based bond detection and coordination numbers
planes        Lattice plane families and interplanar spacings
rmsd          Minimum RMSD under permutation, mirror and inversion
search        Threaded substructure search built on coordination + rmsd
stats         Energy statistics, composition checks and bond angles
"""
