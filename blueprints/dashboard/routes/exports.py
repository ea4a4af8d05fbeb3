"""Booking export routes (CSV and Excel)."""

from flask import Response, request
from flask_login import login_required, current_user

from blueprints.dashboard.routes.bookings import split_arg
from models.booking import get_bookings_for_export
from models.booking_export import build_csv, build_xlsx, export_filename
from models.booking_state import BookingError
from models.profile import get_profile_by_id
from utils.api_response import booking_error
from utils.audit import log_audit
from utils.datetime_helpers import get_today

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


def register_routes(bp):
    """Register export routes on the blueprint."""

    @bp.route('/bookings/export')
    @login_required
    def bookings_export():
        """
        Download bookings as CSV (default) or Excel (format=xlsx).

        Every status is included unless a status filter is given; the date
        range covers whole days in the captain's timezone.
        """
        start_date = request.args.get('startDate') or None
        end_date = request.args.get('endDate') or None
        export_format = request.args.get('format', 'csv').lower()

        try:
            bookings = get_bookings_for_export(
                current_user.id,
                start_date=start_date,
                end_date=end_date,
                statuses=split_arg('status'),
                payment_statuses=split_arg('paymentStatus'),
                tags=split_arg('tags'),
                search=request.args.get('search') or None
            )
        except BookingError as e:
            return booking_error(e)

        tz_name = (get_profile_by_id(current_user.id) or {}).get('timezone')
        today = get_today(tz_name)

        log_audit('export', 'booking', after={
            'format': export_format,
            'count': len(bookings),
            'start_date': start_date,
            'end_date': end_date,
        })

        if export_format == 'xlsx':
            subtitle = f'{start_date} to {end_date}' if start_date and end_date else None
            filename = export_filename(start_date, end_date, today, extension='xlsx')
            return Response(
                build_xlsx(bookings, tz_name, title=f'Bookings - {current_user.display_name}',
                           subtitle=subtitle),
                mimetype=XLSX_MIMETYPE,
                headers={'Content-Disposition': f'attachment; filename="{filename}"'}
            )

        filename = export_filename(start_date, end_date, today)
        return Response(
            build_csv(bookings, tz_name),
            mimetype='text/csv',
            headers={'Content-Disposition': f'attachment; filename="{filename}"'}
        )
