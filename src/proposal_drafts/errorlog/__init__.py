"""Durable diagnostic error log."""

from proposal_drafts.errorlog.logger import ErrorCategory, ErrorLogEntry, ErrorLogger

__all__ = ["ErrorCategory", "ErrorLogEntry", "ErrorLogger"]
