"""
ddCt Calculator - Relative qPCR Expression

Computes relative gene expression from a per-well qPCR Ct table by the
delta-delta-Ct method: technical replicates are averaged, the target gene is
normalized to a reference gene, and every biological replicate is expressed
relative to a control treatment group.
"""

__version__ = "0.1.0"
__author__ = "Genome Innovation Hub"
