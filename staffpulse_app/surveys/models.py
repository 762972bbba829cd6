from __future__ import annotations

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q


class Industry(models.Model):
    """Industry classification used to pick benchmark rows."""

    code = models.SlugField(max_length=50, unique=True)
    name = models.CharField(max_length=255)
    name_ja = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        verbose_name_plural = "Industries"
        ordering = ["code"]

    def __str__(self) -> str:  # pragma: no cover
        return self.code


class Organization(models.Model):
    """
    A company running the survey across its locations.

    Locations form a forest per organization; root nodes are "areas".
    """

    class Status(models.TextChoices):
        ONBOARDING = "onboarding", "Onboarding"
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"

    name = models.CharField(max_length=255)
    industry = models.ForeignKey(
        Industry, on_delete=models.PROTECT, related_name="organizations"
    )
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.ONBOARDING
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:  # pragma: no cover
        return self.name


class Location(models.Model):
    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"

    organization = models.ForeignKey(
        Organization, on_delete=models.CASCADE, related_name="locations"
    )
    parent = models.ForeignKey(
        "self", null=True, blank=True, on_delete=models.SET_NULL, related_name="children"
    )
    name = models.CharField(max_length=255)
    address = models.CharField(max_length=500, blank=True, default="")
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.ACTIVE
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["organization", "parent"], name="location_org_parent_idx")
        ]

    def __str__(self) -> str:  # pragma: no cover
        return self.name

    @property
    def is_active(self) -> bool:
        return self.status == self.Status.ACTIVE

    def ancestors(self) -> list[Location]:
        """Walk up the parent chain, stopping if a location repeats."""
        chain: list[Location] = []
        seen = {self.pk}
        node = self.parent
        while node is not None and node.pk not in seen:
            chain.append(node)
            seen.add(node.pk)
            node = node.parent
        return chain

    def clean(self):
        # Parent must be in the same organization
        if self.parent and self.parent.organization_id != self.organization_id:
            raise ValidationError(
                {"parent": "Parent location must belong to the same organization."}
            )
        if self.parent_id and self.pk and self.parent_id == self.pk:
            raise ValidationError({"parent": "A location cannot be its own parent."})
        # Cycle prevention: parent chain cannot include self
        if self.pk and self.parent:
            if self.parent.pk == self.pk or any(
                anc.pk == self.pk for anc in self.parent.ancestors()
            ):
                raise ValidationError(
                    {"parent": "Locations cannot reference themselves (cycle)."}
                )


class OrganizationAdmin(models.Model):
    """
    An administrator of one organization.

    Full-access admins see every location of their organization; restricted
    admins see their assigned locations and everything below them.
    """

    class AccessMode(models.TextChoices):
        FULL = "full", "Full access"
        RESTRICTED = "restricted", "Restricted"

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="organization_admin",
    )
    organization = models.ForeignKey(
        Organization, on_delete=models.CASCADE, related_name="admins"
    )
    access_mode = models.CharField(
        max_length=20, choices=AccessMode.choices, default=AccessMode.RESTRICTED
    )
    assigned_locations = models.ManyToManyField(
        Location,
        through="LocationAssignment",
        related_name="assigned_admins",
        blank=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.user} @ {self.organization}"

    @property
    def is_full_access(self) -> bool:
        return self.access_mode == self.AccessMode.FULL


class LocationAssignment(models.Model):
    admin = models.ForeignKey(
        OrganizationAdmin, on_delete=models.CASCADE, related_name="assignments"
    )
    location = models.ForeignKey(
        Location, on_delete=models.CASCADE, related_name="assignments"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ("admin", "location")


class Question(models.Model):
    """A survey item. Keys (q1, q2, ...) match the keys in response answers."""

    key = models.SlugField(max_length=20, unique=True)
    order = models.PositiveIntegerField(unique=True)
    text = models.TextField()
    text_ja = models.TextField(blank=True, default="")
    category = models.CharField(max_length=50)
    scale_min = models.PositiveSmallIntegerField(default=1)
    scale_max = models.PositiveSmallIntegerField(default=5)
    reverse_scored = models.BooleanField(default=False)
    is_driver = models.BooleanField(
        default=True,
        help_text="Driver questions feed the overall score; outcome items do not",
    )

    class Meta:
        ordering = ["order"]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.key}: {self.text}"

    def accepts(self, value) -> bool:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        return self.scale_min <= value <= self.scale_max


class SurveyResponse(models.Model):
    """
    One anonymous submission for a location.

    Written once at ingestion together with its derived fields (flagged,
    flag_reasons, encrypted_identity); never updated afterwards.
    """

    location = models.ForeignKey(
        Location, on_delete=models.CASCADE, related_name="responses"
    )
    # question key -> numeric answer
    answers = models.JSONField(default=dict)
    enps_score = models.PositiveSmallIntegerField(
        null=True, blank=True, help_text="Raw 0-10 likelihood to recommend"
    )
    # field key -> free text
    free_text = models.JSONField(default=dict, blank=True)
    flagged = models.BooleanField(default=False)
    flag_reasons = models.JSONField(default=list, blank=True)
    encrypted_identity = models.TextField(
        null=True,
        blank=True,
        help_text="base64(nonce || ciphertext || tag), AES-256-GCM",
    )
    identity_consent = models.BooleanField(default=False)
    submitted_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(
                fields=["location", "submitted_at"], name="response_location_time_idx"
            ),
            models.Index(fields=["flagged"], name="response_flagged_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(encrypted_identity__isnull=True)
                | Q(identity_consent=True),
                name="identity_requires_consent",
            )
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Response {self.pk} for {self.location_id}"

    @property
    def has_identity(self) -> bool:
        return bool(self.encrypted_identity)

    def clean(self):
        if self.encrypted_identity and not self.identity_consent:
            raise ValidationError(
                {"encrypted_identity": "Identity cannot be stored without consent."}
            )

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("Survey responses cannot be modified once stored.")
        super().save(*args, **kwargs)


class Benchmark(models.Model):
    industry = models.ForeignKey(
        Industry, on_delete=models.CASCADE, related_name="benchmarks"
    )
    category = models.CharField(max_length=50)
    avg_score = models.FloatField()
    sample_size = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ("industry", "category")

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.industry_id}/{self.category}: {self.avg_score}"


class IdentityAccessLog(models.Model):
    """
    Append-only trail of identity reveals.

    One row per successful reveal. Rows are never updated or deleted.
    """

    response = models.ForeignKey(
        SurveyResponse, on_delete=models.PROTECT, related_name="identity_access_logs"
    )
    revealer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="identity_reveals",
    )
    reason = models.TextField()
    requested_by = models.CharField(max_length=200)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["created_at"], name="identity_log_created_idx")
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Reveal of {self.response_id} by {self.revealer_id}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("Identity access logs are immutable.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Identity access logs cannot be deleted.")
