from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="RestArea",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("external_id", models.CharField(max_length=64, unique=True)),
                ("name", models.CharField(max_length=255)),
                ("latitude", models.FloatField(blank=True, null=True)),
                ("longitude", models.FloatField(blank=True, null=True)),
                ("highway_name", models.CharField(blank=True, default="", max_length=100)),
                ("highway_code", models.CharField(blank=True, default="", max_length=16)),
                ("direction_label", models.CharField(blank=True, default="", max_length=64)),
                ("facilities", models.JSONField(blank=True, default=list)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ("highway_code", "name"),
                "indexes": [
                    models.Index(fields=["highway_code"], name="rest_area_highway_idx"),
                    models.Index(fields=["latitude", "longitude"], name="rest_area_latlng_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="HighwayInterchange",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("entry_id", models.CharField(max_length=64)),
                ("unit_code", models.CharField(max_length=32)),
                ("name", models.CharField(max_length=255)),
                ("highway_name", models.CharField(max_length=100)),
                ("highway_code", models.CharField(max_length=16)),
                (
                    "direction",
                    models.CharField(choices=[("UP", "Up"), ("DOWN", "Down")], max_length=4),
                ),
                ("weight", models.PositiveIntegerField()),
                ("distance_from_start_km", models.FloatField(default=0.0)),
                ("latitude", models.FloatField()),
                ("longitude", models.FloatField()),
                ("prev_unit_code", models.CharField(blank=True, default="", max_length=32)),
                ("next_unit_code", models.CharField(blank=True, default="", max_length=32)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ("highway_code", "direction", "weight"),
                "indexes": [
                    models.Index(fields=["highway_code", "direction"], name="interchange_hwy_dir_idx"),
                    models.Index(fields=["unit_code"], name="interchange_unit_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("highway_code", "entry_id"), name="interchange_entry_unique"
                    ),
                ],
            },
        ),
    ]
