"""
Custody Kernel

The shared core of the custody engine:
- Item registry with compare-and-swap custody updates
- Holder and custodian sum types with legacy read normalization
- Document, register, audit and notification collaborators
- Structured logging and a typed error hierarchy
"""

__version__ = "0.1.0"
