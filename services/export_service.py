"""
Export service: batch result log as an Excel file.

One sheet with a line per synchronized record, one with the assets
left unmatched for manual review.
"""

from datetime import datetime
from io import BytesIO
from typing import Optional

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Border, Side
import structlog

from models.session import SessionState

logger = structlog.get_logger(__name__)

RESULT_HEADERS = ["Record", "Name", "Status", "Uploaded", "Total", "Catalog ID", "Error"]
UNMATCHED_HEADERS = ["Filename", "Reference", "Variant", "Sequence", "Size (bytes)"]


class ExportService:
    """Service for generating sync report files."""

    def generate_results_excel(
        self,
        state: SessionState,
        generated_at: Optional[datetime] = None,
    ) -> BytesIO:
        """
        Generate the batch results workbook for a session.

        Args:
            state: Session whose results log and unmatched pool are exported
            generated_at: Report timestamp (defaults to now)

        Returns:
            BytesIO containing the Excel file
        """
        generated_at = generated_at or datetime.now()

        logger.info(
            "generating_sync_report",
            session_id=state.session_id,
            results=len(state.results),
            unmatched=len(state.unmatched),
        )

        wb = Workbook()
        ws = wb.active
        ws.title = "Results"

        # Styles
        title_font = Font(bold=True, size=14)
        bold_font = Font(bold=True)
        header_fill = PatternFill(start_color="E0E8FF", end_color="E0E8FF", fill_type="solid")
        success_fill = PatternFill(start_color="E0FFE0", end_color="E0FFE0", fill_type="solid")
        failed_fill = PatternFill(start_color="FFE0E0", end_color="FFE0E0", fill_type="solid")
        thin_border = Border(bottom=Side(style="thin", color="000000"))

        ws.column_dimensions["A"].width = 28
        ws.column_dimensions["B"].width = 36
        ws.column_dimensions["C"].width = 10
        ws.column_dimensions["D"].width = 10
        ws.column_dimensions["E"].width = 10
        ws.column_dimensions["F"].width = 12
        ws.column_dimensions["G"].width = 60

        ws["A1"] = f"Sync results: {state.supplier}"
        ws["A1"].font = title_font
        ws["A2"] = "Generated:"
        ws["B2"] = generated_at.strftime("%d/%m/%Y %H:%M")

        succeeded = sum(1 for r in state.results if r.success)
        ws["A3"] = "Succeeded / failed:"
        ws["B3"] = f"{succeeded} / {len(state.results) - succeeded}"

        row = 5
        for col, header in enumerate(RESULT_HEADERS, start=1):
            cell = ws.cell(row=row, column=col, value=header)
            cell.font = bold_font
            cell.fill = header_fill
            cell.border = thin_border

        for result in state.results:
            row += 1
            ws.cell(row=row, column=1, value=result.record_key)
            ws.cell(row=row, column=2, value=result.display_name)
            status = ws.cell(row=row, column=3, value="OK" if result.success else "FAILED")
            status.fill = success_fill if result.success else failed_fill
            ws.cell(row=row, column=4, value=result.assets_uploaded)
            ws.cell(row=row, column=5, value=result.assets_total)
            ws.cell(row=row, column=6, value=result.external_id)
            ws.cell(row=row, column=7, value=result.error)

        # Unmatched assets
        ws_unmatched = wb.create_sheet("Unmatched")
        ws_unmatched.column_dimensions["A"].width = 50
        ws_unmatched.column_dimensions["B"].width = 14
        ws_unmatched.column_dimensions["C"].width = 20
        ws_unmatched.column_dimensions["D"].width = 10
        ws_unmatched.column_dimensions["E"].width = 14

        for col, header in enumerate(UNMATCHED_HEADERS, start=1):
            cell = ws_unmatched.cell(row=1, column=col, value=header)
            cell.font = bold_font
            cell.fill = header_fill

        for index, asset in enumerate(state.unmatched, start=2):
            ws_unmatched.cell(row=index, column=1, value=asset.filename)
            ws_unmatched.cell(row=index, column=2, value=asset.reference_code or None)
            ws_unmatched.cell(row=index, column=3, value=asset.variant_token or None)
            ws_unmatched.cell(row=index, column=4, value=asset.sequence_number)
            ws_unmatched.cell(row=index, column=5, value=asset.size_bytes)

        # Save to BytesIO
        output = BytesIO()
        wb.save(output)
        output.seek(0)
        return output


_export_service: Optional[ExportService] = None


def get_export_service() -> ExportService:
    """Get or create the ExportService instance."""
    global _export_service
    if _export_service is None:
        _export_service = ExportService()
    return _export_service
