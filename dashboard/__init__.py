"""Django project package for the chart dashboard service."""
