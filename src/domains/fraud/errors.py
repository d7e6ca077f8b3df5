"""Error taxonomy for the transaction pipeline.

Each error carries a machine-readable ``code`` and the HTTP status the API
boundary answers with. The builtin bases (``LookupError``, ``ValueError``,
``PermissionError``) keep the generic exception handler's mapping valid for
callers that only know about those.
"""


class PipelineError(Exception):
    code = "pipeline_error"
    status_code = 500


class TransientScoringFailure(PipelineError):
    """Remote scorer unreachable or answered with something unusable."""

    code = "scoring_unavailable"
    status_code = 503


class StorageError(PipelineError):
    code = "storage_unavailable"
    status_code = 503


class TransactionNotFound(PipelineError, LookupError):
    code = "transaction_not_found"
    status_code = 404

    def __init__(self, transaction_id: str) -> None:
        super().__init__(f"Transaction {transaction_id} not found")
        self.transaction_id = transaction_id


class AlreadyReviewed(PipelineError, ValueError):
    code = "already_reviewed"
    status_code = 400

    def __init__(self, transaction_id: str) -> None:
        super().__init__(f"Transaction {transaction_id} already reviewed")
        self.transaction_id = transaction_id


class InvalidQuery(PipelineError, ValueError):
    code = "invalid_query"
    status_code = 400


class AuthenticationRequired(PipelineError, PermissionError):
    code = "authentication_required"
    status_code = 401


class AuthorizationDenied(PipelineError, PermissionError):
    code = "authorization_denied"
    status_code = 403
