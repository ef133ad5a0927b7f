"""Reporting package — console, JSON and e-mail output of a sync summary."""

from .json_export import export_json
from .summary import format_html, format_text, subject_line
from .email_report import build_message, send_summary

__all__ = [
    "export_json",
    "format_html",
    "format_text",
    "subject_line",
    "build_message",
    "send_summary",
]
