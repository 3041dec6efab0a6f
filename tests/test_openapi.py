from __future__ import annotations

from pathlib import Path

from specpilot.analyzers.openapi import OpenApiAnalyzer, detect_openapi_usage
from specpilot.models import OpenApiUsage
from specpilot.project_cache import ProjectCache

VIEWS = """
    @extend_schema_view(list=extend_schema(summary="List orders"))
    class OrdersView:
        @extend_schema(summary="Create order", responses={201: OrderOut})
        def create(self, request):
            pass


    @api_bearer_auth
    class SecureView:
        @swagger_auto_schema(operation_description="Read")
        def get(self):
            pass


    class BareView:
        def get(self):
            pass

        @doc(tags=["orders"])
        def tagged(self):
            pass

        @api_docs
        def custom(self):
            pass
"""


def _analyze(make_unit, class_name: str, method_name: str, config=None) -> OpenApiUsage:
    klass = make_unit(VIEWS).get_class(class_name)
    return OpenApiAnalyzer(config).analyze(klass, klass.get_method(method_name))


def test_operation_responses_and_class_tags(make_unit) -> None:
    usage = _analyze(make_unit, "OrdersView", "create")
    assert usage.has_operation
    assert usage.has_response
    assert usage.has_tags
    assert not usage.has_bearer_auth
    assert usage.decorators == ("extend_schema",)
    assert usage.documented


def test_bearer_on_class(make_unit) -> None:
    usage = _analyze(make_unit, "SecureView", "get")
    assert usage.has_operation
    assert usage.has_bearer_auth
    assert not usage.has_response


def test_undocumented_handler(make_unit) -> None:
    usage = _analyze(make_unit, "BareView", "get")
    assert usage == OpenApiUsage()
    assert not usage.documented


def test_tags_keyword(make_unit) -> None:
    usage = _analyze(make_unit, "BareView", "tagged")
    assert usage.has_operation
    assert usage.has_tags


def test_custom_vocabulary(make_unit) -> None:
    assert not _analyze(make_unit, "BareView", "custom").documented
    config = {"openapi": {"operation": ["api_docs"]}}
    assert _analyze(make_unit, "BareView", "custom", config).has_operation


def test_detect_by_name(sample_project: Path) -> None:
    cache = ProjectCache()
    usage = detect_openapi_usage(cache, sample_project, "UsersController", "create")
    assert usage is not None
    assert not usage.documented
    assert detect_openapi_usage(cache, sample_project, "NoController", "create") is None
