from django.apps import AppConfig


class SurveysConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "staffpulse_app.surveys"
    label = "surveys"

    def ready(self):
        from .categories import validate_category_table

        # A malformed category table must stop the process before any score
        # is computed from it.
        validate_category_table()
