"""
Report generation for Veil.

Two renderings of a recorded run:
    - console: Rich timeline for humans
    - json: Structured document for programs

Example:
    from veil.report import generate_console_report, generate_json_report

    generate_console_report("abc123", db_path="veil.db")
    print(generate_json_report("abc123", db_path="veil.db"))
"""

from veil.report.console import generate_console_report
from veil.report.json import build_report_dict, generate_json_report

__all__ = [
    "build_report_dict",
    "generate_console_report",
    "generate_json_report",
]
