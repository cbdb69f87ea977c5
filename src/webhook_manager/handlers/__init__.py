"""
Handlers package - Contains all Kopf handlers for the webhook manager.

- registration.py: startup/cleanup, probes, and the watches feeding the
  webhook configuration cache and the dynamic webhook settings
"""
