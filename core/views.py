"""JSON views for the chart dashboard."""

from __future__ import annotations

import json
import logging
from typing import Any

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from core.forms import ChartRenderForm, TruncateLabelForm
from core.services import chart_profiles, render_chart, truncate

logger = logging.getLogger(__name__)


# Stateless endpoints: no sessions or cookie auth to protect.
@csrf_exempt
@require_POST
def render_chart_api(request: HttpRequest) -> JsonResponse:
    """Filter, aggregate and lay out one chart from a JSON request body."""

    payload = _json_body(request)
    if payload is None:
        return _bad_request({"__all__": ["Request body must be a JSON object."]})

    form = ChartRenderForm(data=payload)
    if not form.is_valid():
        logger.info("Rejected chart render request: %s", form.errors.as_json())
        return _bad_request(_form_errors(form))

    return JsonResponse(render_chart(form.cleaned_data))


@csrf_exempt
@require_POST
def truncate_label_api(request: HttpRequest) -> JsonResponse:
    """Fit a label into a pixel width using the configured chart font."""

    payload = _json_body(request)
    if payload is None:
        return _bad_request({"__all__": ["Request body must be a JSON object."]})

    form = TruncateLabelForm(data=payload)
    if not form.is_valid():
        return _bad_request(_form_errors(form))

    label = truncate(form.cleaned_data["text"] or "", form.cleaned_data["maxWidth"])
    return JsonResponse({"ok": True, "text": label.text, "isTruncated": label.is_truncated})


@require_GET
def chart_profiles_api(request: HttpRequest) -> JsonResponse:
    """Return chart minimums and responsive breakpoints."""

    profiles = chart_profiles()
    return JsonResponse(
        {
            "fallbackType": profiles.fallback_type,
            "minimums": {
                chart_type: {"width": minimum.width, "height": minimum.height}
                for chart_type, minimum in profiles.minimums.items()
            },
            "breakpoints": {
                "small": profiles.breakpoints.small,
                "medium": profiles.breakpoints.medium,
                "large": profiles.breakpoints.large,
            },
        }
    )


def _json_body(request: HttpRequest) -> dict[str, Any] | None:
    try:
        payload = json.loads(request.body or b"{}")
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    return payload if isinstance(payload, dict) else None


def _form_errors(form: ChartRenderForm | TruncateLabelForm) -> dict[str, list[str]]:
    return {field: [str(message) for message in messages] for field, messages in form.errors.items()}


def _bad_request(errors: dict[str, list[str]]) -> JsonResponse:
    return JsonResponse({"ok": False, "errors": errors}, status=400)
