"""
Revenue report endpoints.

Any clinic role can read reports; the scope (all doctors with breakdown, or
the requesting doctor only) is derived from the acting user.
"""
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.authz.acting import resolve_acting_user
from apps.authz.permissions import IsClinicStaff
from apps.core.exceptions import Validation
from apps.reports import services
from apps.reports.periods import local_date
from apps.reports.serializers import ReportSummarySerializer, StatisticsSerializer


def _int_param(request, name, default=None):
    value = request.query_params.get(name)
    if value in (None, ''):
        if default is None:
            raise Validation(f'{name} is required')
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise Validation(f'{name} must be an integer')


class DailyReportView(APIView):
    """GET /api/v1/reports/daily/ - today in the clinic time zone"""
    permission_classes = [IsClinicStaff]

    def get(self, request):
        summary = services.get_daily_report(resolve_acting_user(request.user))
        return Response(ReportSummarySerializer(summary).data)


class MonthlyReportView(APIView):
    """GET /api/v1/reports/monthly/?year=&month= (defaults to the current month)"""
    permission_classes = [IsClinicStaff]

    def get(self, request):
        today = local_date()
        year = _int_param(request, 'year', today.year)
        month = _int_param(request, 'month', today.month)
        summary = services.get_monthly_report(year, month, resolve_acting_user(request.user))
        return Response(ReportSummarySerializer(summary).data)


class YearlyReportView(APIView):
    """GET /api/v1/reports/yearly/?year= (defaults to the current year)"""
    permission_classes = [IsClinicStaff]

    def get(self, request):
        year = _int_param(request, 'year', local_date().year)
        summary = services.get_yearly_report(year, resolve_acting_user(request.user))
        return Response(ReportSummarySerializer(summary).data)


class StatisticsView(APIView):
    """GET /api/v1/reports/statistics/ - totals for today, this month, this year"""
    permission_classes = [IsClinicStaff]

    def get(self, request):
        stats = services.get_statistics(resolve_acting_user(request.user))
        return Response(StatisticsSerializer(stats).data)
