"""
Print shop storefront order service with M-Pesa payment reconciliation
"""
__version__ = "1.0.0"
