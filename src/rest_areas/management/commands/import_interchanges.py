from __future__ import annotations

from pathlib import Path
from typing import Any

import polars as pl
from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from rest_areas.models import HighwayInterchange
from rest_areas.services.interchanges import build_directional_interchanges
from rest_areas.services.types import RawInterchange

REQUIRED_COLUMNS = {
    "unit_code",
    "name",
    "highway_code",
    "highway_name",
    "latitude",
    "longitude",
    "distance_from_start_km",
}


class Command(BaseCommand):
    help = "Rebuild the directional interchange table from a CSV of physical interchanges."

    def add_arguments(self, parser: Any) -> None:
        parser.add_argument(
            "--csv-path",
            type=str,
            default=str(settings.PROJECT_ROOT / "interchanges.csv"),
            help="Path to the source interchange CSV",
        )

    def handle(self, *_: Any, **options: Any) -> None:
        csv_path = Path(options["csv_path"])
        if not csv_path.exists():
            raise CommandError(f"CSV file does not exist: {csv_path}")

        frame = self._load_and_transform(csv_path)
        raw = [RawInterchange(**row) for row in frame.to_dicts()]
        interchanges = build_directional_interchanges(raw)
        if not interchanges:
            raise CommandError("No valid interchanges found, keeping the existing table")

        with transaction.atomic():
            HighwayInterchange.objects.all().delete()
            HighwayInterchange.objects.bulk_create(
                [
                    HighwayInterchange(
                        entry_id=interchange.id,
                        unit_code=interchange.unit_code,
                        name=interchange.name,
                        highway_name=interchange.highway_name,
                        highway_code=interchange.highway_code,
                        direction=interchange.direction.value,
                        weight=interchange.weight,
                        distance_from_start_km=interchange.distance_from_start_km,
                        latitude=interchange.lat,
                        longitude=interchange.lng,
                        prev_unit_code=interchange.prev_unit_code or "",
                        next_unit_code=interchange.next_unit_code or "",
                    )
                    for interchange in interchanges
                ],
                batch_size=1000,
            )

        highways = len({interchange.highway_code for interchange in interchanges})
        self.stdout.write(
            self.style.SUCCESS(
                "Imported interchanges: "
                f"{len(raw)} physical, {len(interchanges)} directional entries on {highways} highways"
            )
        )

    @staticmethod
    def _load_and_transform(csv_path: Path) -> pl.DataFrame:
        frame = pl.read_csv(csv_path, infer_schema=False)
        missing_columns = REQUIRED_COLUMNS.difference(frame.columns)
        if missing_columns:
            raise CommandError(f"Missing expected columns: {sorted(missing_columns)}")

        return (
            frame.select(
                pl.col("unit_code").str.strip_chars().alias("unit_code"),
                pl.col("name").str.strip_chars().alias("name"),
                pl.col("highway_code").str.strip_chars().alias("highway_code"),
                pl.col("highway_name").str.strip_chars().fill_null("").alias("highway_name"),
                pl.col("latitude").str.strip_chars().cast(pl.Float64, strict=False).alias("lat"),
                pl.col("longitude").str.strip_chars().cast(pl.Float64, strict=False).alias("lng"),
                pl.col("distance_from_start_km")
                .str.strip_chars()
                .cast(pl.Float64, strict=False)
                .alias("distance_from_start_km"),
            )
            .drop_nulls(["unit_code", "name", "highway_code", "lat", "lng", "distance_from_start_km"])
            .filter((pl.col("unit_code").str.len_chars() > 0) & (pl.col("highway_code").str.len_chars() > 0))
            .unique(subset=["highway_code", "unit_code"], keep="first", maintain_order=True)
        )
