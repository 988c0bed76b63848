"""Wager: peer-to-peer betting escrow engine."""

__version__ = "0.1.0"
__author__ = "Wager Team"

__all__ = ["__version__", "__author__"]
