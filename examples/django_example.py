"""Example Django application with request-scoped structured logging.

Run with any WSGI server, e.g.:
    gunicorn examples.django_example:application

Then visit:
    http://localhost:8000/           - Logs through request.log
    http://localhost:8000/missing    - Http404, reported as a WARNING
    http://localhost:8000/error      - ValueError, reported as an ERROR
"""

import django
from django.conf import settings

from cloudlogpy import Logging
from cloudlogpy.adapters.frameworks.django import create_django_middleware

logging = Logging.from_env(
    log_name="django-example",
    request_user_extractor=lambda request: getattr(request, "user_id", None),
)
LoggingMiddleware = create_django_middleware(logging)

# Configure Django settings
if not settings.configured:
    settings.configure(
        DEBUG=False,
        ROOT_URLCONF=__name__,
        ALLOWED_HOSTS=["*"],
        SECRET_KEY="example-secret-key-not-for-production",
        MIDDLEWARE=[f"{__name__}.LoggingMiddleware"],
    )
    django.setup()

from django.http import Http404, HttpRequest, HttpResponse  # noqa: E402
from django.urls import path  # noqa: E402


def root(request: HttpRequest) -> HttpResponse:
    """Root endpoint writing one entry with the request's trace."""
    request.log.info("Hello from Django", {"path": request.path})
    return HttpResponse("Hello! Check the console output.")


def missing(request: HttpRequest) -> HttpResponse:
    raise Http404("No such page")


def error_demo(request: HttpRequest) -> HttpResponse:
    raise ValueError("Intentional error for demonstration")


urlpatterns = [
    path("", root, name="root"),
    path("missing", missing, name="missing"),
    path("error", error_demo, name="error"),
]


def get_wsgi_application():
    from django.core.wsgi import get_wsgi_application as django_wsgi

    return django_wsgi()


application = get_wsgi_application()
