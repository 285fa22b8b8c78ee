class HotelError(Exception):
    """Base for errors that cross the API boundary as {success: false, error}."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(HotelError):
    status_code = 400


class Unauthorized(HotelError):
    status_code = 401


class Forbidden(HotelError):
    status_code = 403


class NotFound(HotelError):
    status_code = 404


class RoomUnavailable(HotelError):
    status_code = 409

    def __init__(self, message: str = "Room is not available for the selected dates"):
        super().__init__(message)


class InvalidTransition(HotelError):
    status_code = 409

    def __init__(self, current: str, event: str, reason: str = ""):
        msg = f"Cannot {event} a booking in status {current}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.current = current
        self.event = event


class Conflict(HotelError):
    status_code = 409


class GatewayError(HotelError):
    status_code = 502
