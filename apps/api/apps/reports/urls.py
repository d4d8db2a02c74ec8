"""
Report URLs.
"""
from django.urls import path

from .views import DailyReportView, MonthlyReportView, StatisticsView, YearlyReportView

urlpatterns = [
    path('daily/', DailyReportView.as_view(), name='report-daily'),
    path('monthly/', MonthlyReportView.as_view(), name='report-monthly'),
    path('yearly/', YearlyReportView.as_view(), name='report-yearly'),
    path('statistics/', StatisticsView.as_view(), name='report-statistics'),
]
