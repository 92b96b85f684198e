from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator, metrics
from prometheus_fastapi_instrumentator.metrics import Info

# handlers that move or reserve money
FINANCIAL_HANDLERS = (
    "/api/v1/seller/account/transfer",
    "/api/v1/seller/withdrawals",
    "/api/v1/admin/withdrawals",
    "/api/v1/admin/seller-accounts",
)

FINANCIAL_REQUESTS = Counter(
    "sellerbank_financial_requests_total",
    "Financial operations by handler and response status",
    labelnames=("handler", "method", "status"),
)


def financial_requests():
    def instrumentation(info: Info) -> None:
        handler = info.modified_handler
        if info.method == "GET" or not handler.startswith(FINANCIAL_HANDLERS):
            return
        FINANCIAL_REQUESTS.labels(handler, info.method, info.modified_status).inc()
    return instrumentation


instrumentator = Instrumentator(
    should_ignore_untemplated=True,      # /foo/123 -> /foo/{id}
    excluded_handlers=["/metrics"],      # exclude metrics endpoint from instrumentation
    should_instrument_requests_inprogress=True,
    should_group_status_codes=False,
)
instrumentator.add(metrics.default())
instrumentator.add(financial_requests())
