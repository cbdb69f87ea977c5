"""
Models package - Pydantic models for type-safe resource handling.

Defines data models for:
- Mutating and validating webhook configurations
- Dynamic webhook settings from the init ConfigMap
"""
