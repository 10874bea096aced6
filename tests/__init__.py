"""
Tileset writer test suite

Structure:
- unit/: geo math, value types, writers, persistence, reprojection, config, logging
- integration/: scripts/write_tileset.py end to end on a temp directory
"""
