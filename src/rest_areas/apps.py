from django.apps import AppConfig


class RestAreasConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "rest_areas"

    def ready(self) -> None:
        from rest_areas.services.heuristic_tables import validate_tables

        validate_tables()
