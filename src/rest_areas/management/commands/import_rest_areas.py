from __future__ import annotations

from pathlib import Path
from typing import Any

import polars as pl
from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from rest_areas.models import RestArea
from rest_areas.services.geo import KOREA_LAT_RANGE, KOREA_LNG_RANGE

REQUIRED_COLUMNS = {
    "rest_area_code",
    "name",
    "latitude",
    "longitude",
    "highway_name",
    "highway_code",
    "direction",
    "facilities",
}


class Command(BaseCommand):
    help = "Import and normalize the rest-area catalog from a CSV using Polars."

    def add_arguments(self, parser: Any) -> None:
        parser.add_argument(
            "--csv-path",
            type=str,
            default=str(settings.PROJECT_ROOT / "rest-areas.csv"),
            help="Path to the source rest-area CSV",
        )
        parser.add_argument(
            "--replace",
            action="store_true",
            help="Delete existing rest areas before importing",
        )

    def handle(self, *_: Any, **options: Any) -> None:
        csv_path = Path(options["csv_path"])
        if not csv_path.exists():
            raise CommandError(f"CSV file does not exist: {csv_path}")

        records = self._load_and_transform(csv_path).to_dicts()

        if options["replace"]:
            RestArea.objects.all().delete()

        existing = {
            rest_area.external_id: rest_area
            for rest_area in RestArea.objects.filter(
                external_id__in=[row["rest_area_code"] for row in records]
            )
        }

        to_create: list[RestArea] = []
        to_update: list[RestArea] = []
        for row in records:
            fields = {
                "name": row["name"],
                "latitude": row["latitude"],
                "longitude": row["longitude"],
                "highway_name": row["highway_name"],
                "highway_code": row["highway_code"],
                "direction_label": row["direction"],
                "facilities": row["facilities"] or [],
            }
            rest_area = existing.get(row["rest_area_code"])
            if rest_area is None:
                to_create.append(RestArea(external_id=row["rest_area_code"], **fields))
                continue

            for name, value in fields.items():
                setattr(rest_area, name, value)
            to_update.append(rest_area)

        if to_create:
            RestArea.objects.bulk_create(to_create, batch_size=1000)
        if to_update:
            RestArea.objects.bulk_update(
                to_update,
                [
                    "name",
                    "latitude",
                    "longitude",
                    "highway_name",
                    "highway_code",
                    "direction_label",
                    "facilities",
                ],
                batch_size=1000,
            )

        self.stdout.write(
            self.style.SUCCESS(
                "Imported rest areas: "
                f"{len(records)} rows normalized, {len(to_create)} created, {len(to_update)} updated"
            )
        )

    @staticmethod
    def _load_and_transform(csv_path: Path) -> pl.DataFrame:
        # Codes such as "0010" must stay strings.
        frame = pl.read_csv(csv_path, infer_schema=False)
        missing_columns = REQUIRED_COLUMNS.difference(frame.columns)
        if missing_columns:
            raise CommandError(f"Missing expected columns: {sorted(missing_columns)}")

        def text(column: str) -> pl.Expr:
            return pl.col(column).str.strip_chars().fill_null("")

        latitude = pl.col("latitude").str.strip_chars().cast(pl.Float64, strict=False)
        longitude = pl.col("longitude").str.strip_chars().cast(pl.Float64, strict=False)
        in_range = latitude.is_between(*KOREA_LAT_RANGE) & longitude.is_between(*KOREA_LNG_RANGE)

        return (
            frame.select(
                text("rest_area_code").alias("rest_area_code"),
                text("name").alias("name"),
                pl.when(in_range).then(latitude).otherwise(None).alias("latitude"),
                pl.when(in_range).then(longitude).otherwise(None).alias("longitude"),
                text("highway_name").alias("highway_name"),
                text("highway_code").alias("highway_code"),
                text("direction").alias("direction"),
                text("facilities")
                .str.split("|")
                .list.eval(pl.element().str.strip_chars())
                .list.eval(pl.element().filter(pl.element().str.len_chars() > 0))
                .alias("facilities"),
            )
            .filter((pl.col("rest_area_code").str.len_chars() > 0) & (pl.col("name").str.len_chars() > 0))
            .unique(subset=["rest_area_code"], keep="last", maintain_order=True)
        )
