"""
Admission webhook configurations managed by the webhook manager.

This package defines the five webhook roles, their identities in both
addressing modes, and the pure builders that produce the desired
configuration objects.
"""
