"""Typed readers for scenario input files."""

from .workbook_parser import WorkbookParser

__all__ = ["WorkbookParser"]
