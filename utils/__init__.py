"""
Shared helpers: Decimal arithmetic and kitchen unit conversion.
"""
