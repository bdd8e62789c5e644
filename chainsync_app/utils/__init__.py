"""
Utility functions module.

Amount conversion between user-facing decimal strings and the endpoint's
integer base units.

Unit Semantics:
- Every amount crossing the endpoint boundary is an integer in base units
- Every amount shown to or read from the presentation layer is a decimal string
- Conversion is exact for any value with at most ``decimals`` fractional digits
"""
