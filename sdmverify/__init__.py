"""
sdmverify — verification of NTAG 424 DNA Secure Dynamic Messaging scans.

A tag configured for SDM rewrites its NDEF URL on every read to mirror its
UID, a read counter and a truncated AES-CMAC. This package rebuilds the
tag's key, recomputes the MAC and rejects forged or replayed scans.
"""

__version__ = "1.0.0"
