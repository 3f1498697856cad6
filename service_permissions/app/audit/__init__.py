"""
Audit recording of permission decisions.
"""
