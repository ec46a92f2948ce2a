"""
Reconciliation plugin: compares application statuses between the sales
portal (Site 1) and the status portal (Site 2) and writes an operator report.
"""

from .models import SearchFilters, Site1Row, Site2Result, Summary
from .runner import run_reconcile
from .summary import build_summary

__all__ = [
    "SearchFilters",
    "Site1Row",
    "Site2Result",
    "Summary",
    "run_reconcile",
    "build_summary",
]
