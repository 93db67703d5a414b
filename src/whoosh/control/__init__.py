"""
Control package for Whoosh

This package provides the fan speed control logic: curves, composite
temperatures and the supervised control loop (see control.manager).
"""

from .curve import Curve, Point, lerp, parse_point
from .composite import combine, evaluate_composites

__all__ = [
    'Curve',
    'Point',
    'lerp',
    'parse_point',
    'combine',
    'evaluate_composites'
]
