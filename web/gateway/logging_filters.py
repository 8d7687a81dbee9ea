"""Logging filter that stamps records with the current request id."""

from logging import Filter, LogRecord

from .middleware import REQUEST_ID_CTX


class RequestIdFilter(Filter):
    """Attach ``request_id`` to every record.

    Records emitted outside a request (management commands, the webhook retry
    worker) get the context var default ``"-"`` so ``%(request_id)s`` always
    resolves in the JSON formatter.
    """

    def filter(self, record: LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = REQUEST_ID_CTX.get()
        return True
