"""Proof of Life: hidden-information pursuit game client"""

__version__ = "0.1.0"
