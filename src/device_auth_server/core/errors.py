"""
Error kinds reported by the device registration flow.

Every failure is raised as a subclass of DeviceAuthError and rendered by the
HTTP layer as {"error": <error>, "message": <message>} with `status_code`.
"""


class DeviceAuthError(Exception):
    """Base class for classified device flow failures."""

    error: str = "InternalError"
    status_code: int = 500
    default_message: str = "Unknown failure"

    def __init__(self, message: str | None = None, status_code: int | None = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> dict[str, str]:
        return {"error": self.error, "message": self.message}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(error={self.error!r}, status_code={self.status_code}, message={self.message!r})"


class BadRequestError(DeviceAuthError):
    error = "BadRequest"
    status_code = 400
    default_message = "The provided product and dsn do not match valid values"


class UnauthorizedError(DeviceAuthError):
    error = "UnauthorizedError"
    status_code = 401
    default_message = "no authentication"


class TooManyPendingError(DeviceAuthError):
    error = "Throttle"
    status_code = 503
    default_message = "Try again later"


class AlreadyPendingError(DeviceAuthError):
    error = "PendingRegistration"
    status_code = 403
    default_message = "This device already has a registration pending"


class InvalidRegistrationCodeError(DeviceAuthError):
    error = "InvalidRegistrationCode"
    status_code = 401
    default_message = "Registration code is invalid"


class ExpiredRegistrationCodeError(DeviceAuthError):
    error = "ExpiredRegistrationCode"
    status_code = 401
    default_message = "Registration code expired"


class InvalidStateError(DeviceAuthError):
    error = "InvalidState"
    status_code = 401
    default_message = "Invalid state"


class InvalidProductInformationError(DeviceAuthError):
    error = "InvalidProductInformation"
    status_code = 401
    default_message = "The provided product and dsn do not match the provided deviceSecret."


class ExpiredDeviceSecretError(DeviceAuthError):
    error = "ExpiredDeviceSecret"
    status_code = 401
    default_message = (
        "Registration was not completed in time for this deviceSecret. Please restart the process."
    )


class InvalidDeviceSecretError(DeviceAuthError):
    error = "InvalidDeviceSecret"
    status_code = 401
    default_message = (
        "This deviceSecret is either invalid, or register was not completed in time for this "
        "deviceSecret. Please restart the process."
    )


class TokenRetrievalError(DeviceAuthError):
    """Identity provider token call failed.

    `status_code` is the provider's HTTP status when one was received, 500 for
    transport and parse failures.
    """

    error = "TokenRetrievalFailure"
    status_code = 500
    default_message = "Unexpected failure while retrieving tokens."


class InternalError(DeviceAuthError):
    error = "InternalError"
    status_code = 500
    default_message = "Unknown failure"
