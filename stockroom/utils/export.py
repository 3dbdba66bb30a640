"""
Export utilities for generating Excel and CSV files
"""

import csv
import io
from io import BytesIO
from datetime import datetime

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side
from openpyxl.utils import get_column_letter


def _headers_and_keys(columns):
    if isinstance(columns, dict):
        return list(columns.values()), list(columns.keys())
    return list(columns), list(columns)


def export_to_excel(data, columns, title="Report", sheet_name="Data"):
    """
    Export rows to an Excel workbook

    Args:
        data: List of dicts (or lists) containing the rows
        columns: List of column headers or dict mapping keys to display names
        title: Report title written above the header row
        sheet_name: Name of the worksheet

    Returns:
        BytesIO object containing the .xlsx file
    """
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name

    header_font = Font(bold=True, color="FFFFFF", size=11)
    header_fill = PatternFill(start_color="1F4E79", end_color="1F4E79", fill_type="solid")
    thin = Side(style='thin')
    border = Border(left=thin, right=thin, top=thin, bottom=thin)

    headers, keys = _headers_and_keys(columns)

    ws.merge_cells(start_row=1, start_column=1, end_row=1, end_column=len(headers))
    title_cell = ws.cell(row=1, column=1, value=title)
    title_cell.font = Font(bold=True, size=14)
    title_cell.alignment = Alignment(horizontal='center')

    ws.merge_cells(start_row=2, start_column=1, end_row=2, end_column=len(headers))
    date_cell = ws.cell(row=2, column=1, value=f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    date_cell.font = Font(italic=True, size=10, color="666666")
    date_cell.alignment = Alignment(horizontal='center')

    header_row = 4
    for col_idx, header in enumerate(headers, 1):
        cell = ws.cell(row=header_row, column=col_idx, value=header)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal='center')
        cell.border = border

    for row_idx, row_data in enumerate(data, header_row + 1):
        for col_idx, key in enumerate(keys, 1):
            if isinstance(row_data, dict):
                value = row_data.get(key, '')
            else:
                value = row_data[col_idx - 1] if col_idx - 1 < len(row_data) else ''

            cell = ws.cell(row=row_idx, column=col_idx, value=value)
            cell.border = border
            cell.alignment = Alignment(horizontal='right' if isinstance(value, (int, float)) else 'left')

    for col_idx in range(1, len(headers) + 1):
        column_letter = get_column_letter(col_idx)
        max_length = max(
            (len(str(cell.value)) for cell in ws[column_letter][header_row - 1:] if cell.value is not None),
            default=0
        )
        ws.column_dimensions[column_letter].width = min(max_length + 2, 50)

    output = BytesIO()
    wb.save(output)
    output.seek(0)
    return output


def export_to_csv(data, columns, include_header=True):
    """
    Export rows to CSV

    Returns:
        BytesIO object containing UTF-8 CSV with a BOM for Excel
    """
    headers, keys = _headers_and_keys(columns)

    text_output = io.StringIO()
    writer = csv.writer(text_output)
    if include_header:
        writer.writerow(headers)
    for row_data in data:
        if isinstance(row_data, dict):
            writer.writerow([row_data.get(key, '') for key in keys])
        else:
            writer.writerow(row_data)

    output = BytesIO()
    output.write(text_output.getvalue().encode('utf-8-sig'))
    output.seek(0)
    return output


def export_inventory_report(rows, columns, format_type='xlsx'):
    """
    Export the full inventory listing

    Returns:
        (BytesIO, filename, mimetype)
    """
    stamp = datetime.now().strftime('%Y%m%d')
    if format_type == 'csv':
        return export_to_csv(rows, columns), f"inventory_{stamp}.csv", 'text/csv'
    return (
        export_to_excel(rows, columns, title="Inventory Report", sheet_name="Inventory"),
        f"inventory_{stamp}.xlsx",
        'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
    )
