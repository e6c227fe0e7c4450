"""
Error taxonomy for the trip lifecycle.

Every error carries a stable ``code`` and a short ``user_message`` the
presentation layer can show as is.  The detailed ``str(exc)`` is meant for
logs only.

Transport failures (see :mod:`src.domain.ports`) never leak past the
services layer; :func:`classify_transport_error` turns them into the
matching taxonomy member.
"""

from __future__ import annotations

from .ports import (
    ServerRejected,
    TransportError,
    TransportNotFound,
    TransportUnavailable,
)


class TripError(Exception):
    """Base class for every error the trip subsystem surfaces."""

    code = "trip_error"
    user_message = "The trip could not be updated."

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.user_message)
        self.detail = detail or self.user_message


class LocationUnresolved(TripError):
    code = "location_unresolved"
    user_message = (
        "We couldn't find that address. Drop a pin on the map or try a "
        "nearby landmark."
    )


class InvalidQuoteInput(TripError):
    code = "invalid_quote_input"
    user_message = (
        "We can't price this trip. Check that pickup and destination are "
        "different places and the service type is available."
    )


class TripAlreadyActive(TripError):
    code = "trip_already_active"
    user_message = (
        "You already have a trip in progress. Finish or cancel it before "
        "booking another."
    )


class IllegalTransition(TripError):
    code = "illegal_transition"
    user_message = "That action isn't possible at this stage of the trip."


class MissingPartnerData(TripError):
    code = "missing_partner_data"
    user_message = (
        "A partner was assigned but their details haven't arrived yet. "
        "We'll keep checking."
    )


class MissingFareData(TripError):
    code = "missing_fare_data"
    user_message = (
        "Your trip has finished but the final fare isn't available yet. "
        "We'll keep checking."
    )


class CancellationNotAllowed(TripError):
    code = "cancellation_not_allowed"
    user_message = (
        "This trip can no longer be cancelled: it has passed the point "
        "where cancelling is possible."
    )


class NetworkError(TripError):
    code = "network_error"
    user_message = (
        "We're having trouble reaching the server. Check your connection; "
        "we'll retry automatically."
    )


class NotFound(TripError):
    code = "not_found"
    user_message = "We couldn't find this trip on the server."


class RequestRejected(TripError):
    code = "request_rejected"
    user_message = "The server declined this request."


def classify_transport_error(exc: TransportError) -> TripError:
    """Map a transport failure onto the trip error taxonomy."""
    detail = str(exc) or None
    if isinstance(exc, TransportNotFound):
        return NotFound(detail)
    if isinstance(exc, ServerRejected):
        return RequestRejected(detail)
    if isinstance(exc, TransportUnavailable):
        return NetworkError(detail)
    return NetworkError(detail)
