from .console_reporter import report_console
from .json_reporter import report_json
from .sarif_reporter import report_sarif

__all__ = ["report_console", "report_json", "report_sarif"]
