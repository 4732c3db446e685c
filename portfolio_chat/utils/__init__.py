"""
UTILITIES PACKAGE
=================

Helpers used by the services (no HTTP, no business logic):

  retry       - with_retry(fn): awaits fn(); on a retryable failure retries with exponential backoff.
  diagnostics - log_outbound_payload / log_error_detail: best-effort request and error logging.
"""
