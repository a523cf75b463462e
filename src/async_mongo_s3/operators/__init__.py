"""Operators that run complete exports."""

from .export_operator import ExportOperator, ExportSummary

__all__ = ["ExportOperator", "ExportSummary"]
