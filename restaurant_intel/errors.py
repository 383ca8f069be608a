from typing import Optional


class ProviderError(Exception):
    """
    Failure talking to an external provider.

    `code` is either one of our transport codes (NO_API_KEY, HTTP_ERROR,
    API_ERROR, TIMEOUT, NETWORK_ERROR) or the provider's own result code
    (e.g. the food-safety registry's INFO-200 for "no data").
    """

    def __init__(self, message: str, code: str, status: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.status = status

    def __str__(self) -> str:
        return f"{self.args[0]} (code: {self.code})"


NO_DATA_CODE = "INFO-200"


def is_no_data_error(error: Exception) -> bool:
    return isinstance(error, ProviderError) and error.code == NO_DATA_CODE


class ValidationError(ValueError):
    """Request rejected before any lookup was made."""


class RecommendValidationError(ValidationError):
    pass


class CompareValidationError(ValidationError):
    pass
