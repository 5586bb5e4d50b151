"""Django ORM models (persistence layer).

These models handle database concerns. Domain logic lives in domain/models.py.
Event and Session are the read-only catalog; the remaining models belong to
the admission engine and reference catalog rows by id only.
"""

import uuid

from django.db import models
from django.db.models import F, Q
from django.utils import timezone


class Event(models.Model):
    """Persistence model for events."""

    class Status(models.TextChoices):
        DRAFT = "draft"
        PUBLISHED = "published"
        CANCELLED = "cancelled"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(max_length=255)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT)
    starts_at = models.DateTimeField(blank=True, null=True)
    ends_at = models.DateTimeField(blank=True, null=True)
    max_capacity = models.PositiveIntegerField(blank=True, null=True)
    registration_enabled = models.BooleanField(default=True)
    registration_opens_at = models.DateTimeField(blank=True, null=True)
    registration_closes_at = models.DateTimeField(blank=True, null=True)
    cancellation_deadline = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["-created_at"]),
        ]

    def __str__(self) -> str:
        return self.title


class Session(models.Model):
    """Persistence model for event sessions."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="sessions")
    title = models.CharField(max_length=255)
    starts_at = models.DateTimeField(blank=True, null=True)
    ends_at = models.DateTimeField(blank=True, null=True)
    capacity = models.PositiveIntegerField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["starts_at"]
        indexes = [
            models.Index(fields=["event", "starts_at"]),
        ]

    def __str__(self) -> str:
        return f"{self.event.title} - {self.title}"


class CapacityCounter(models.Model):
    """Admitted units per scope. A null total means unlimited."""

    scope_key = models.CharField(max_length=120, unique=True)
    event_id = models.UUIDField()
    session_id = models.UUIDField(blank=True, null=True)
    total = models.PositiveIntegerField(blank=True, null=True)
    used = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=Q(total__isnull=True) | Q(used__lte=F("total")),
                name="capacity_used_within_total",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.scope_key}: {self.used}/{self.total if self.total is not None else '∞'}"


class Enrollment(models.Model):
    """Persistence model for event-level registrations."""

    class Status(models.TextChoices):
        ACTIVE = "active"
        CANCELLED = "cancelled"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event_id = models.UUIDField()
    user_ref = models.CharField(max_length=255, blank=True, null=True)
    email = models.EmailField()
    first_name = models.CharField(max_length=150)
    last_name = models.CharField(max_length=150)
    quantity = models.PositiveIntegerField(default=1)
    ticket_type = models.CharField(max_length=100)
    promo_code = models.CharField(max_length=100, blank=True, null=True)
    special_requirements = models.TextField(blank=True, null=True)
    amount_due = models.DecimalField(max_digits=10, decimal_places=2)
    payment_status = models.CharField(max_length=20, default="pending")
    payment_reference = models.CharField(max_length=255, blank=True, null=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)
    created_at = models.DateTimeField(default=timezone.now)
    cancelled_at = models.DateTimeField(blank=True, null=True)
    cancelled_by = models.CharField(max_length=255, blank=True, null=True)
    cancellation_reason = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["event_id", "status"]),
            models.Index(fields=["user_ref"]),
            models.Index(fields=["email"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["event_id", "email"],
                condition=Q(status="active"),
                name="unique_active_enrollment_email",
            ),
            models.UniqueConstraint(
                fields=["event_id", "user_ref"],
                condition=Q(status="active", user_ref__isnull=False),
                name="unique_active_enrollment_user",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.email} @ {self.event_id} ({self.status})"


class SessionEnrollment(models.Model):
    """Persistence model for session-level registrations."""

    class Attendance(models.TextChoices):
        REGISTERED = "registered"
        ATTENDED = "attended"
        NO_SHOW = "no_show"

    session_id = models.UUIDField()
    enrollment = models.ForeignKey(
        Enrollment, on_delete=models.CASCADE, related_name="session_enrollments"
    )
    attendance_status = models.CharField(
        max_length=20, choices=Attendance.choices, default=Attendance.REGISTERED
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["session_id", "enrollment"],
                name="unique_session_enrollment",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.enrollment_id} in {self.session_id}"


class WaitlistEntry(models.Model):
    """Persistence model for waitlisted entrants, one queue per scope."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    scope_key = models.CharField(max_length=120)
    event_id = models.UUIDField()
    session_id = models.UUIDField(blank=True, null=True)
    user_ref = models.CharField(max_length=255, blank=True, null=True)
    email = models.EmailField()
    first_name = models.CharField(max_length=150)
    last_name = models.CharField(max_length=150)
    position = models.PositiveIntegerField()
    notified = models.BooleanField(default=False)
    notified_at = models.DateTimeField(blank=True, null=True)
    enqueued_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["scope_key", "position"]
        indexes = [
            models.Index(fields=["scope_key", "position"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["scope_key", "email"],
                name="unique_waitlist_entrant",
            ),
            models.UniqueConstraint(
                fields=["scope_key", "user_ref"],
                condition=Q(user_ref__isnull=False),
                name="unique_waitlist_account",
            ),
        ]

    def __str__(self) -> str:
        return f"#{self.position} {self.email} ({self.scope_key})"
