from django.contrib import admin

from .models import FloorPlanUpload, IngestResult


@admin.register(FloorPlanUpload)
class FloorPlanUploadAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "floor", "original_file", "created_at")
    list_filter = ("floor",)
    search_fields = ("name",)
    ordering = ("-created_at",)


@admin.register(IngestResult)
class IngestResultAdmin(admin.ModelAdmin):
    list_display = ("id", "upload", "status", "entity_count", "skipped_count", "created_at", "updated_at")
    list_filter = ("status",)
    readonly_fields = ("geometry",)
    ordering = ("-created_at",)
