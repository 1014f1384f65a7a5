"""Pydantic schemas and service result types."""

from .common import ServiceResult

__all__ = ["ServiceResult"]
