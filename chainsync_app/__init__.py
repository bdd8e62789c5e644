"""
ChainSync App - Resilient Contract Operation Engine

Drives state-mutating calls against a smart-contract endpoint through a
browser-style signing wallet: session setup, network checks, padded gas
estimation, submission, confirmation, transient-failure retries and
post-operation refresh of the displayed account state.
"""

__version__ = "0.1.0"
__author__ = "ChainSync Team"
