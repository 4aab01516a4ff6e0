"""Convert requests into the HTTP request structures of Cloud Logging."""

from cloudlogpy.core.models import ErrorReportingHttpRequest, HttpRequest
from cloudlogpy.core.ports import RequestProperties


def _referrer(request: RequestProperties) -> str | None:
    referrer = request.header("referer")
    if referrer is None:
        referrer = request.header("referrer")
    return referrer


def request_to_error_reporting_http_request(
    request: RequestProperties,
) -> ErrorReportingHttpRequest:
    """Build an Error Reporting ``HttpRequestContext`` for a request.

    See https://cloud.google.com/error-reporting/reference/rest/v1beta1/ErrorContext#httprequestcontext
    """
    http_request: ErrorReportingHttpRequest = {
        "method": request.method,
        "url": request.url,
    }
    user_agent = request.header("user-agent")
    if user_agent is not None:
        http_request["userAgent"] = user_agent
    referrer = _referrer(request)
    if referrer is not None:
        http_request["referrer"] = referrer
    if request.response is not None:
        http_request["responseStatusCode"] = request.response.status_code
    remote_ip = request.remote_ip
    if remote_ip:
        http_request["remoteIp"] = remote_ip
    return http_request


def request_to_http_request(request: RequestProperties) -> HttpRequest:
    """Build a Cloud Logging ``HttpRequest`` for a request and its response.

    Sizes are taken from the ``Content-Length`` headers and written as
    strings, as the LogEntry format expects for int64 fields.

    See https://cloud.google.com/logging/docs/reference/v2/rest/v2/LogEntry#httprequest
    """
    reporting = request_to_error_reporting_http_request(request)
    http_request: HttpRequest = {
        "requestMethod": reporting["method"],
        "requestUrl": reporting["url"],
    }
    if "remoteIp" in reporting:
        http_request["remoteIp"] = reporting["remoteIp"]
    if "referrer" in reporting:
        http_request["referer"] = reporting["referrer"]
    if "userAgent" in reporting:
        http_request["userAgent"] = reporting["userAgent"]
    if "responseStatusCode" in reporting:
        http_request["status"] = reporting["responseStatusCode"]

    request_size = request.header("content-length")
    if request_size and request_size.isdigit():
        http_request["requestSize"] = request_size
    if request.protocol:
        http_request["protocol"] = request.protocol

    response = request.response
    if response is not None:
        response_size = response.headers.get("content-length")
        if response_size and str(response_size).isdigit():
            http_request["responseSize"] = str(response_size)
    return http_request
