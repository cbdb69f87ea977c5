"""
Observability package - logging and metrics for the webhook manager.
"""
