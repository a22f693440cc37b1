from resale_connector.services.spreadsheet_import.import_service import ImportOutcome, import_workbook
from resale_connector.services.spreadsheet_import.orchestrator import ParseResult, parse_workbook

__all__ = ["ImportOutcome", "ParseResult", "import_workbook", "parse_workbook"]
