# storefront/utils/errors.py


class StoreError(Exception):
    """Bazowy blad domenowy, routery mapuja status_code na HTTPException."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(StoreError):
    status_code = 404


class ValidationFailure(StoreError):
    status_code = 400


class ConflictError(StoreError):
    status_code = 409


class ExternalServiceError(StoreError):
    """Blad stripe / redis / bazy po stronie zaleznosci."""

    status_code = 502


class SignatureVerificationFailure(StoreError):
    status_code = 400
