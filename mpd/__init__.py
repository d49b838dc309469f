"""Multiplex PCR primer pool design by iterative constraint relaxation."""

__version__ = '0.1.0'
