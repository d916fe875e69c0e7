"""
Custom exceptions for the plan finder webhook
"""


class PlanBotError(Exception):
    """Base exception; carries the HTTP status and error code to report"""

    status_code = 500
    error_code = "INTERNAL_ERROR"

    def __init__(self, message: str = "Sorry, we encountered an error. Please try again later."):
        super().__init__(message)
        self.message = message


class QueryValidationError(PlanBotError):
    """Webhook payload failed validation"""

    status_code = 400
    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Invalid request parameters"):
        super().__init__(message)


class CatalogUnavailableError(PlanBotError):
    """Plan catalog could not be fetched"""

    status_code = 503
    error_code = "EXTERNAL_API_ERROR"

    def __init__(self, message: str = "Failed to fetch plans data"):
        super().__init__(message)


class InvalidCatalogError(CatalogUnavailableError):
    """Fetched catalog document has an unexpected shape"""

    def __init__(self, message: str = "Invalid plans data structure received"):
        super().__init__(message)
