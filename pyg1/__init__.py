"""pyg1

G1-continuous multipatch discretizations for Isogeometric Analysis.
"""

__version__ = '0.1.0'
