"""
MTA Integration Package

pymilter adapter between the MTA and the transaction dispatcher. Importing
this package requires pymilter.
"""

from .milter import MilterMutationSink, TLSPolicyMilter, run_milter

__all__ = [
    "MilterMutationSink",
    "TLSPolicyMilter",
    "run_milter",
]
