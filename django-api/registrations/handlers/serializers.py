"""Serializers between caller payloads and the service layer.

Input serializers validate raw payloads and build request types. Output
serializers render domain models and outcomes to primitives. Failed results
expose only the error code and its user-safe message.
"""

from typing import Any

from rest_framework import serializers

from registrations.domain import Actor, Result
from registrations.domain.results import RegistrationRequest


class RegistrationRequestSerializer(serializers.Serializer):
    """Validates an event registration payload."""

    event_id = serializers.UUIDField()
    email = serializers.EmailField()
    first_name = serializers.CharField(max_length=100)
    last_name = serializers.CharField(max_length=100)
    ticket_type = serializers.CharField(max_length=100)
    quantity = serializers.IntegerField(min_value=1, default=1)
    user_ref = serializers.CharField(max_length=100, required=False, allow_null=True, default=None)
    promo_code = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    special_requirements = serializers.CharField(required=False, allow_blank=True, default="")

    def to_request(self) -> RegistrationRequest:
        data = self.validated_data
        return RegistrationRequest(
            event_id=str(data["event_id"]),
            email=data["email"],
            first_name=data["first_name"],
            last_name=data["last_name"],
            ticket_type=data["ticket_type"],
            quantity=data["quantity"],
            user_ref=data.get("user_ref"),
            promo_code=data.get("promo_code") or None,
            special_requirements=data.get("special_requirements") or None,
        )


class CancellationRequestSerializer(serializers.Serializer):
    """Validates a cancellation payload and the acting identity."""

    enrollment_id = serializers.UUIDField()
    reason = serializers.CharField(required=False, allow_blank=True, default="")
    user_ref = serializers.CharField(required=False, allow_null=True, default=None)
    email = serializers.EmailField(required=False, allow_null=True, default=None)
    is_admin = serializers.BooleanField(required=False, default=False)

    def to_actor(self) -> Actor:
        data = self.validated_data
        return Actor(user_ref=data.get("user_ref"), email=data.get("email"), is_admin=data["is_admin"])


class SessionSelectionSerializer(serializers.Serializer):
    """Validates a bulk session registration payload."""

    enrollment_id = serializers.UUIDField()
    session_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)


class ParticipantSerializer(serializers.Serializer):
    email = serializers.EmailField()
    first_name = serializers.CharField()
    last_name = serializers.CharField()
    user_ref = serializers.CharField(allow_null=True)


class EnrollmentSerializer(serializers.Serializer):
    """Serializer for the Enrollment domain model."""

    id = serializers.CharField()
    event_id = serializers.CharField()
    participant = ParticipantSerializer()
    quantity = serializers.IntegerField()
    ticket_type = serializers.CharField(source="ticket.ticket_type")
    amount_due = serializers.CharField()
    status = serializers.CharField(source="status.value")
    payment_status = serializers.CharField(source="payment_status.value")
    payment_reference = serializers.CharField(allow_null=True)
    created_at = serializers.DateTimeField()


class SessionSerializer(serializers.Serializer):
    """Serializer for the Session domain model."""

    id = serializers.CharField()
    event_id = serializers.CharField()
    title = serializers.CharField()
    starts_at = serializers.SerializerMethodField()
    ends_at = serializers.SerializerMethodField()
    capacity = serializers.IntegerField(source="capacity.value", allow_null=True)

    def get_starts_at(self, obj) -> str | None:
        return obj.interval.start.isoformat() if obj.interval else None

    def get_ends_at(self, obj) -> str | None:
        return obj.interval.end.isoformat() if obj.interval else None


class SessionEnrollmentSerializer(serializers.Serializer):
    session_id = serializers.CharField()
    enrollment_id = serializers.CharField()
    attendance_status = serializers.CharField(source="attendance_status.value")
    created_at = serializers.DateTimeField()


class WaitlistEntrySerializer(serializers.Serializer):
    """Serializer for the WaitlistEntry domain model."""

    id = serializers.CharField()
    scope = serializers.CharField(source="scope.key")
    email = serializers.EmailField(source="participant.email")
    name = serializers.CharField(source="participant.full_name")
    position = serializers.IntegerField()
    notified = serializers.BooleanField()
    notified_at = serializers.DateTimeField(allow_null=True)
    enqueued_at = serializers.DateTimeField()


class CapacitySerializer(serializers.Serializer):
    scope = serializers.CharField(source="scope.key")
    total = serializers.IntegerField(allow_null=True)
    used = serializers.IntegerField()
    remaining = serializers.IntegerField(allow_null=True)
    unbounded = serializers.BooleanField(source="is_unbounded")


class RegistrationOutcomeSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    admitted = serializers.BooleanField()
    enrollment_id = serializers.CharField(allow_null=True)
    amount_due = serializers.CharField(allow_null=True)
    payment_required = serializers.BooleanField()
    waitlisted = serializers.BooleanField()
    position = serializers.IntegerField(allow_null=True)


class SessionRegistrationOutcomeSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    admitted = serializers.BooleanField()
    session_enrollment = SessionEnrollmentSerializer(allow_null=True)
    waitlisted = serializers.BooleanField()
    position = serializers.IntegerField(allow_null=True)


class ErrorSerializer(serializers.Serializer):
    """Only the code and user-safe message leave the service layer."""

    code = serializers.CharField(source="code.value")
    message = serializers.CharField()
    position = serializers.SerializerMethodField()

    def get_position(self, obj) -> int | None:
        # Set on repeat waitlist joins.
        return getattr(obj, "position", None)


def render_result(result: Result, serializer_class: type[serializers.Serializer] | None = None) -> dict[str, Any]:
    """Render a Result as ``{"ok": True, "data": ...}`` or ``{"ok": False, "error": ...}``."""
    if not result.ok:
        return {"ok": False, "error": ErrorSerializer(result.error).data}
    value = result.value
    if serializer_class is None:
        return {"ok": True, "data": value}
    many = isinstance(value, list | tuple)
    return {"ok": True, "data": serializer_class(value, many=many).data}
