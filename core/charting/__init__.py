"""Responsive chart layout helpers.

Charts are sized and labelled by pure functions driven by container pixel
sizes and the rows produced by the analysis pipeline. This package contains
the layout DTOs, chart profiles, text measurement and resize debouncing used
by the chart JSON endpoints.
"""
