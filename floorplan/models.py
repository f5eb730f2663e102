from django.db import models


class FloorPlanUpload(models.Model):
    """
    Stores an uploaded CAD drawing (DXF, or DWG converted externally) for
    one floor.
    """

    name = models.CharField(max_length=255, blank=True)
    floor = models.CharField(max_length=64, default="Ground")
    original_file = models.FileField(upload_to="floorplans/uploads/")
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return self.name or f"Floor plan {self.pk}"


class IngestResult(models.Model):
    """
    Stores the ingestion outcome: status, log, normalized backdrop geometry
    and a PNG preview.
    """

    STATUS_PENDING = "PENDING"
    STATUS_RUNNING = "RUNNING"
    STATUS_PARSED = "PARSED"
    STATUS_FAILED = "FAILED"
    STATUS_UNSUPPORTED = "UNSUPPORTED"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_RUNNING, "Running"),
        (STATUS_PARSED, "Parsed"),
        (STATUS_FAILED, "Failed"),
        (STATUS_UNSUPPORTED, "Unsupported"),
    ]

    upload = models.OneToOneField(
        FloorPlanUpload,
        on_delete=models.CASCADE,
        related_name="ingest_result",
    )
    preview_image = models.FileField(upload_to="floorplans/previews/", blank=True, null=True)
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING
    )
    log = models.TextField(blank=True)
    entity_count = models.PositiveIntegerField(default=0)
    skipped_count = models.PositiveIntegerField(default=0)
    units = models.CharField(max_length=32, blank=True)
    geometry = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"Ingest result for {self.upload}"

    @property
    def outline_available(self) -> bool:
        return self.status == self.STATUS_PARSED and self.entity_count > 0
