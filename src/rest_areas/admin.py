from django.contrib import admin

from rest_areas.models import HighwayInterchange, RestArea


@admin.register(RestArea)
class RestAreaAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "highway_name",
        "highway_code",
        "direction_label",
        "latitude",
        "longitude",
    )
    list_filter = ("highway_name", "direction_label")
    search_fields = ("name", "external_id", "highway_name")
    ordering = ("highway_code", "name")


@admin.register(HighwayInterchange)
class HighwayInterchangeAdmin(admin.ModelAdmin):
    list_display = ("name", "highway_name", "direction", "weight", "distance_from_start_km")
    list_filter = ("highway_name", "direction")
    search_fields = ("name", "unit_code", "highway_name")
    ordering = ("highway_code", "direction", "weight")
