"""
Kineforge - Node-based Live Performance Engine

Turns webcam body-tracking signals (face and hand landmarks) into smoothed
control values that drive a reactive stage visual. The processing chain is
a small dataflow graph re-evaluated once per display frame.

Top Priorities (strict order):
1. Deterministic evaluation order (same topology, same results)
2. Temporal stability (no snapping on a missed detection)
3. Pay render cost only for what the operator is observing
4. Degrade to neutral output, never crash the show
"""

__version__ = "0.1.0"
__author__ = "Kineforge Team"
