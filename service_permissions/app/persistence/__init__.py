"""
Persistence backends for facets, audit records and the read-only
platform directories.
"""
