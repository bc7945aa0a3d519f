"""
AutoSplit - team payment splitting ledger.

Teams register members with basis-point shares; every payment is split on
arrival, and members change the split through majority-weighted proposals.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
