from __future__ import annotations

from django.db import models


class RestArea(models.Model):
    objects = models.Manager["RestArea"]()

    external_id = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=255)
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)
    highway_name = models.CharField(max_length=100, blank=True, default="")
    highway_code = models.CharField(max_length=16, blank=True, default="")
    direction_label = models.CharField(max_length=64, blank=True, default="")
    facilities = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("highway_code", "name")
        indexes = (
            models.Index(fields=["highway_code"], name="rest_area_highway_idx"),
            models.Index(fields=["latitude", "longitude"], name="rest_area_latlng_idx"),
        )

    def __str__(self) -> str:
        direction = f" {self.direction_label}" if self.direction_label else ""
        return f"{self.name}{direction} ({self.highway_name or 'unknown highway'})"


class HighwayInterchange(models.Model):
    """One carriageway-specific interchange entry (``<unit_code>_<UP|DOWN>``)."""

    class Direction(models.TextChoices):
        UP = "UP", "Up"
        DOWN = "DOWN", "Down"

    objects = models.Manager["HighwayInterchange"]()

    entry_id = models.CharField(max_length=64)
    unit_code = models.CharField(max_length=32)
    name = models.CharField(max_length=255)
    highway_name = models.CharField(max_length=100)
    highway_code = models.CharField(max_length=16)
    direction = models.CharField(max_length=4, choices=Direction.choices)
    weight = models.PositiveIntegerField()
    distance_from_start_km = models.FloatField(default=0.0)
    latitude = models.FloatField()
    longitude = models.FloatField()
    prev_unit_code = models.CharField(max_length=32, blank=True, default="")
    next_unit_code = models.CharField(max_length=32, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("highway_code", "direction", "weight")
        indexes = (
            models.Index(fields=["highway_code", "direction"], name="interchange_hwy_dir_idx"),
            models.Index(fields=["unit_code"], name="interchange_unit_idx"),
        )
        constraints = (
            models.UniqueConstraint(fields=["highway_code", "entry_id"], name="interchange_entry_unique"),
        )

    def __str__(self) -> str:
        return f"{self.name} [{self.highway_name} {self.direction} #{self.weight}]"
