from django.apps import AppConfig


class FloorplanConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "floorplan"
    verbose_name = "Floor plans"
