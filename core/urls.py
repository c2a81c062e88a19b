"""URL configuration for core views."""

from __future__ import annotations

from django.urls import path

from core import views

app_name = "core"

urlpatterns = [
    path("api/charts/render/", views.render_chart_api, name="render_chart_api"),
    path("api/charts/truncate-label/", views.truncate_label_api, name="truncate_label_api"),
    path("api/charts/profiles/", views.chart_profiles_api, name="chart_profiles_api"),
]
