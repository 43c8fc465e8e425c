"""Report artifact and report inputs."""

from spo_folder_audit.report.csv_sink import REPORT_COLUMNS, CsvReportSink, report_filename
from spo_folder_audit.report.sites import load_site_allow_list

__all__ = [
    "REPORT_COLUMNS",
    "CsvReportSink",
    "load_site_allow_list",
    "report_filename",
]
