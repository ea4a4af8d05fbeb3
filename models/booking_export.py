"""
Booking export.
Flattens bookings into spreadsheet rows and renders them as CSV or Excel.
"""

import csv
import io

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side

from utils.datetime_helpers import format_local, from_db_timestamp
from utils.helpers import cents_to_dollars, short_booking_ref

EXPORT_HEADERS = [
    'Booking ID', 'Guest Name', 'Email', 'Phone', 'Party Size', 'Date',
    'Start Time', 'End Time', 'Duration (hours)', 'Vessel', 'Trip Type',
    'Status', 'Payment Status', 'Total ($)', 'Deposit Paid ($)',
    'Balance Due ($)', 'Tags', 'Captain Notes', 'Created Date'
]

# Minimum Excel column widths, by header position
COLUMN_MIN_WIDTHS = {1: 12, 2: 22, 3: 26, 4: 16, 6: 12, 10: 18, 11: 20, 17: 20, 18: 30, 19: 18}


def export_filename(start_date: str = None, end_date: str = None, today=None,
                    extension: str = 'csv') -> str:
    """bookings_{start}_to_{end}.csv when a range was asked for, else a dated name."""
    if start_date and end_date:
        return f'bookings_{start_date}_to_{end_date}.{extension}'
    return f'bookings_export_{today.isoformat()}.{extension}'


def booking_to_row(booking: dict, tz_name: str = None) -> list:
    """One export row; times are shown in the captain's timezone."""
    start = from_db_timestamp(booking['scheduled_start'])
    end = from_db_timestamp(booking['scheduled_end'])
    duration = (end - start).total_seconds() / 3600

    return [
        short_booking_ref(booking['id']),
        booking['guest_name'],
        booking['guest_email'],
        booking.get('guest_phone') or '',
        booking['party_size'],
        format_local(booking['scheduled_start'], tz_name, '%Y-%m-%d'),
        format_local(booking['scheduled_start'], tz_name, '%H:%M'),
        format_local(booking['scheduled_end'], tz_name, '%H:%M'),
        f'{duration:.1f}',
        booking.get('vessel_name') or '',
        booking.get('trip_title') or '',
        booking['status'],
        booking['payment_status'],
        cents_to_dollars(booking['total_price_cents']),
        cents_to_dollars(booking['deposit_paid_cents']),
        cents_to_dollars(booking['balance_due_cents']),
        ', '.join(booking.get('tags') or []),
        booking.get('internal_notes') or '',
        format_local(booking['created_at'], tz_name, '%Y-%m-%d %H:%M'),
    ]


def build_csv(bookings: list, tz_name: str = None) -> str:
    """Render bookings as CSV text with a header row."""
    output = io.StringIO()
    writer = csv.writer(output, lineterminator='\n')
    writer.writerow(EXPORT_HEADERS)
    for booking in bookings:
        writer.writerow(booking_to_row(booking, tz_name))
    return output.getvalue()


def build_xlsx(bookings: list, tz_name: str = None, title: str = 'Bookings',
               subtitle: str = None) -> bytes:
    """
    Render bookings as a formatted Excel workbook.

    Args:
        bookings: Booking dicts
        tz_name: Captain timezone for dates and times
        title: Title shown above the table
        subtitle: Optional filter summary shown under the title

    Returns:
        The .xlsx file contents
    """
    wb = Workbook()
    ws = wb.active
    ws.title = 'Bookings'

    # Styles
    header_font = Font(bold=True, color='FFFFFF', size=11)
    header_fill = PatternFill(start_color='0E4A6B', end_color='0E4A6B', fill_type='solid')
    header_alignment = Alignment(horizontal='center', vertical='center', wrap_text=True)
    thin_border = Border(
        left=Side(style='thin', color='D4D4D4'),
        right=Side(style='thin', color='D4D4D4'),
        top=Side(style='thin', color='D4D4D4'),
        bottom=Side(style='thin', color='D4D4D4')
    )
    data_alignment = Alignment(vertical='center')
    alt_fill = PatternFill(start_color='F5F5F5', end_color='F5F5F5', fill_type='solid')

    num_cols = len(EXPORT_HEADERS)
    last_col = ws.cell(row=1, column=num_cols).column_letter

    # Title rows
    ws.merge_cells(f'A1:{last_col}1')
    title_cell = ws.cell(row=1, column=1, value=title)
    title_cell.font = Font(bold=True, size=14, color='0E4A6B')
    title_cell.alignment = Alignment(horizontal='center', vertical='center')

    ws.merge_cells(f'A2:{last_col}2')
    parts = [subtitle] if subtitle else []
    parts.append(f'Total: {len(bookings)} bookings')
    subtitle_cell = ws.cell(row=2, column=1, value=' | '.join(parts))
    subtitle_cell.font = Font(size=10, color='666666')
    subtitle_cell.alignment = Alignment(horizontal='center', vertical='center')

    header_row = 4
    for col, header in enumerate(EXPORT_HEADERS, 1):
        cell = ws.cell(row=header_row, column=col, value=header)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = header_alignment
        cell.border = thin_border

    ws.freeze_panes = f'A{header_row + 1}'

    for row_idx, booking in enumerate(bookings, header_row + 1):
        is_alt = (row_idx - header_row) % 2 == 0
        for col, value in enumerate(booking_to_row(booking, tz_name), 1):
            cell = ws.cell(row=row_idx, column=col, value=value)
            cell.border = thin_border
            cell.alignment = data_alignment
            if is_alt:
                cell.fill = alt_fill

    for col in range(1, num_cols + 1):
        letter = ws.cell(row=header_row, column=col).column_letter
        ws.column_dimensions[letter].width = COLUMN_MIN_WIDTHS.get(col, 14)

    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()
