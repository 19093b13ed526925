"""
STELLAR CVE - Remédiation automatique des vulnérabilités des noeuds Stellar.
"""

__version__ = "0.1.0"
