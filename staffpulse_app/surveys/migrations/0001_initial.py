from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Industry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.SlugField(unique=True)),
                ("name", models.CharField(max_length=255)),
                ("name_ja", models.CharField(blank=True, default="", max_length=255)),
            ],
            options={
                "verbose_name_plural": "Industries",
                "ordering": ["code"],
            },
        ),
        migrations.CreateModel(
            name="Organization",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                (
                    "status",
                    models.CharField(
                        choices=[("onboarding", "Onboarding"), ("active", "Active"), ("inactive", "Inactive")],
                        default="onboarding",
                        max_length=20,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "industry",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="organizations",
                        to="surveys.industry",
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="Location",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("address", models.CharField(blank=True, default="", max_length=500)),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("inactive", "Inactive")],
                        default="active",
                        max_length=20,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="locations",
                        to="surveys.organization",
                    ),
                ),
                (
                    "parent",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="children",
                        to="surveys.location",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["organization", "parent"], name="location_org_parent_idx")
                ],
            },
        ),
        migrations.CreateModel(
            name="OrganizationAdmin",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "access_mode",
                    models.CharField(
                        choices=[("full", "Full access"), ("restricted", "Restricted")],
                        default="restricted",
                        max_length=20,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="admins",
                        to="surveys.organization",
                    ),
                ),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="organization_admin",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="LocationAssignment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "admin",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="assignments",
                        to="surveys.organizationadmin",
                    ),
                ),
                (
                    "location",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="assignments",
                        to="surveys.location",
                    ),
                ),
            ],
            options={
                "unique_together": {("admin", "location")},
            },
        ),
        migrations.AddField(
            model_name="organizationadmin",
            name="assigned_locations",
            field=models.ManyToManyField(
                blank=True,
                related_name="assigned_admins",
                through="surveys.LocationAssignment",
                to="surveys.location",
            ),
        ),
        migrations.CreateModel(
            name="Question",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("key", models.SlugField(max_length=20, unique=True)),
                ("order", models.PositiveIntegerField(unique=True)),
                ("text", models.TextField()),
                ("text_ja", models.TextField(blank=True, default="")),
                ("category", models.CharField(max_length=50)),
                ("scale_min", models.PositiveSmallIntegerField(default=1)),
                ("scale_max", models.PositiveSmallIntegerField(default=5)),
                ("reverse_scored", models.BooleanField(default=False)),
                (
                    "is_driver",
                    models.BooleanField(
                        default=True,
                        help_text="Driver questions feed the overall score; outcome items do not",
                    ),
                ),
            ],
            options={
                "ordering": ["order"],
            },
        ),
        migrations.CreateModel(
            name="SurveyResponse",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("answers", models.JSONField(default=dict)),
                (
                    "enps_score",
                    models.PositiveSmallIntegerField(
                        blank=True, help_text="Raw 0-10 likelihood to recommend", null=True
                    ),
                ),
                ("free_text", models.JSONField(blank=True, default=dict)),
                ("flagged", models.BooleanField(default=False)),
                ("flag_reasons", models.JSONField(blank=True, default=list)),
                (
                    "encrypted_identity",
                    models.TextField(
                        blank=True,
                        help_text="base64(nonce || ciphertext || tag), AES-256-GCM",
                        null=True,
                    ),
                ),
                ("identity_consent", models.BooleanField(default=False)),
                ("submitted_at", models.DateTimeField(auto_now_add=True)),
                (
                    "location",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="responses",
                        to="surveys.location",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["location", "submitted_at"], name="response_location_time_idx"),
                    models.Index(fields=["flagged"], name="response_flagged_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("encrypted_identity__isnull", True), ("identity_consent", True), _connector="OR"),
                        name="identity_requires_consent",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Benchmark",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("category", models.CharField(max_length=50)),
                ("avg_score", models.FloatField()),
                ("sample_size", models.PositiveIntegerField(default=0)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "industry",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="benchmarks",
                        to="surveys.industry",
                    ),
                ),
            ],
            options={
                "unique_together": {("industry", "category")},
            },
        ),
        migrations.CreateModel(
            name="IdentityAccessLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("reason", models.TextField()),
                ("requested_by", models.CharField(max_length=200)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "response",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="identity_access_logs",
                        to="surveys.surveyresponse",
                    ),
                ),
                (
                    "revealer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="identity_reveals",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["created_at"], name="identity_log_created_idx")
                ],
            },
        ),
    ]
