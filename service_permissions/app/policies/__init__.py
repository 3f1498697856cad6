"""
Per-resource decision policies.

Every operation evaluates in the same order: authentication, ownership,
public visibility (read paths, before authentication), elevated facets in
priority order, relationships, then a default deny.
"""
