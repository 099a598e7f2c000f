"""Tests for request context middleware and its log fields."""

from types import SimpleNamespace
from uuid import uuid4

from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.requests import Request

from coursehub.auth.dependencies import OptionalIdentity
from coursehub.auth.identity import Identity, JWTIdentityProvider
from coursehub.core.context import clear_context, get_context, set_correlation_id, set_user_id
from coursehub.core.middleware import RequestContextMiddleware, route_fields
from coursehub.courses.models import Course


def make_request(**scope) -> Request:
    return Request({"type": "http", "method": "GET", "path": "/", "headers": [], **scope})


class TestRouteFields:
    """Tests for route_fields."""

    def test_unrouted_request_is_empty(self) -> None:
        assert route_fields(make_request()) == {}

    def test_routed_request(self) -> None:
        """Route template, caller and resource ids are reported."""
        enrollment_id, lesson_id, user_id = uuid4(), uuid4(), uuid4()
        route = SimpleNamespace(path="/v1/enrollments/{enrollment_id}/lessons/{lesson_id}/complete")
        request = make_request(
            route=route,
            path_params={
                "enrollment_id": str(enrollment_id),
                "lesson_id": str(lesson_id),
                "page": "2",
            },
            state={"user_id": user_id},
        )

        fields = route_fields(request)

        assert fields == {
            "route": "/v1/enrollments/{enrollment_id}/lessons/{lesson_id}/complete",
            "user_id": str(user_id),
            "enrollment_id": str(enrollment_id),
            "lesson_id": str(lesson_id),
        }


class TestContext:
    """Tests for log context variables."""

    def test_context_collects_set_values(self) -> None:
        user_id = uuid4()
        set_correlation_id("order-42")
        set_user_id(user_id)

        context = get_context()
        clear_context()

        assert context["correlation_id"] == "order-42"
        assert context["user_id"] == str(user_id)
        assert get_context() == {}


class TestMiddleware:
    """Tests for RequestContextMiddleware over the app."""

    def test_ids_are_echoed(self, client: TestClient, course: Course) -> None:
        """Request and correlation ids come back on the response."""
        response = client.get(
            f"/v1/courses/{course.id}/lessons/{course.lessons[0].id}/access",
            headers={"X-Request-ID": "req-1", "X-Correlation-ID": "checkout-9"},
        )

        assert response.headers["X-Request-ID"] == "req-1"
        assert response.headers["X-Correlation-ID"] == "checkout-9"

    def test_request_id_generated(self, client: TestClient, course: Course) -> None:
        response = client.get(f"/v1/courses/{course.id}/lessons/{course.lessons[0].id}/access")

        assert response.headers["X-Request-ID"]
        assert "X-Correlation-ID" not in response.headers

    def test_authenticated_caller_reaches_request_state(
        self, settings, auth_headers, student: Identity
    ) -> None:
        """The resolved caller is left on request state for the finish log line."""
        app = FastAPI()
        app.state.identity_provider = JWTIdentityProvider(settings)
        seen: dict = {}

        @app.get("/v1/courses/{course_id}/lessons/{lesson_id}/access")
        async def access(course_id: str, lesson_id: str, identity: OptionalIdentity) -> dict:
            return {"anonymous": identity.is_anonymous}

        @app.middleware("http")
        async def capture(request, call_next):
            response = await call_next(request)
            seen.update(route_fields(request))
            return response

        app.add_middleware(RequestContextMiddleware)
        course_id, lesson_id = uuid4(), uuid4()

        with TestClient(app) as client:
            response = client.get(
                f"/v1/courses/{course_id}/lessons/{lesson_id}/access",
                headers=auth_headers(student),
            )

        assert response.json() == {"anonymous": False}
        assert seen == {
            "route": "/v1/courses/{course_id}/lessons/{lesson_id}/access",
            "user_id": str(student.user_id),
            "course_id": str(course_id),
            "lesson_id": str(lesson_id),
        }
