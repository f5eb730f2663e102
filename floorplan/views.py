import json

from django.http import HttpRequest, JsonResponse
from django.shortcuts import get_object_or_404
from django.views import View

from .models import FloorPlanUpload, IngestResult
from .services.adjacency import AdjacencyIndex
from .services.cad_ingest import detect_floor_from_filename
from .services.processor import load_document, process_upload
from .services.render_bridge import RenderBridge
from .services.scene import SceneOptions, SceneReconstructor
from .services.zones import DEFAULT_FLOOR, ZoneModel


def _result_payload(upload: FloorPlanUpload, result: IngestResult) -> dict:
    return {
        "upload_id": upload.pk,
        "result_id": result.pk,
        "name": upload.name,
        "floor": upload.floor,
        "status": result.status,
        "log": result.log,
        "entity_count": result.entity_count,
        "skipped_count": result.skipped_count,
        "units": result.units,
        "outline_available": result.outline_available,
        "preview_url": result.preview_image.url if result.preview_image else None,
    }


class FloorPlanUploadAPI(View):
    """
    JSON endpoint for uploading a drawing for one floor.

    Accepts multipart ``file`` plus optional ``floor`` and ``name``. The
    floor is guessed from the file name when omitted. Returns the ingest
    status and, when parsing succeeded, the normalized backdrop geometry.
    """

    def post(self, request: HttpRequest) -> JsonResponse:
        uploaded_file = request.FILES.get("file")
        if not uploaded_file:
            return JsonResponse({"error": "file is required"}, status=400)

        name = request.POST.get("name") or uploaded_file.name
        floor = (
            request.POST.get("floor")
            or detect_floor_from_filename(uploaded_file.name)
            or DEFAULT_FLOOR
        )

        upload = FloorPlanUpload.objects.create(name=name, floor=floor, original_file=uploaded_file)
        result = IngestResult.objects.create(upload=upload)

        # Synchronous for now; the session facade does the same work off-thread.
        process_upload(upload, result)

        payload = _result_payload(upload, result)
        payload["geometry"] = result.geometry
        return JsonResponse(payload)


def file_detail_view(request: HttpRequest, pk: int) -> JsonResponse:
    """Status, log and counts for one upload."""

    upload = get_object_or_404(FloorPlanUpload, pk=pk)
    result = getattr(upload, "ingest_result", None)
    if result is None:
        return JsonResponse({"upload_id": upload.pk, "floor": upload.floor, "status": IngestResult.STATUS_PENDING})

    payload = _result_payload(upload, result)
    if request.GET.get("geometry") == "1":
        payload["geometry"] = result.geometry
    return JsonResponse(payload)


class SceneBuildAPI(View):
    """
    Builds the 3D scene for one floor from exported editor state.

    Body (JSON)::

        {"floor": "Ground", "floor_index": 0,
         "zones": [...], "device_positions": {...},
         "upload_id": 12}

    ``upload_id`` is optional; when given and parseable, the CAD outline is
    included. Without it the scene is built from zones and devices alone.
    """

    def post(self, request: HttpRequest) -> JsonResponse:
        try:
            body = json.loads(request.body or b"{}")
        except (UnicodeDecodeError, json.JSONDecodeError):
            return JsonResponse({"error": "invalid JSON body"}, status=400)
        if not isinstance(body, dict):
            return JsonResponse({"error": "expected a JSON object"}, status=400)

        try:
            model = ZoneModel.from_state(body)
            floor_index = int(body.get("floor_index", 0))
            upload_id = body.get("upload_id")
            upload_id = None if upload_id is None else int(upload_id)
        except (AttributeError, TypeError, ValueError) as exc:
            return JsonResponse({"error": f"invalid state: {exc}"}, status=400)

        floor = str(body.get("floor") or DEFAULT_FLOOR)
        outline = None
        if upload_id is not None:
            upload = get_object_or_404(FloorPlanUpload, pk=upload_id)
            outline = load_document(upload)

        zones = model.zones_on_floor(floor)
        options = SceneOptions.from_settings()
        adjacency = AdjacencyIndex.for_zones(zones, epsilon=options.adjacency_epsilon)
        scene = SceneReconstructor(options).build(
            floor_index,
            zones,
            model.positions_on_floor(floor),
            adjacency=adjacency,
            outline=outline,
        )

        payload = RenderBridge().push_scene(scene)
        payload["floor"] = floor
        payload["adjacency"] = adjacency.as_dict()
        return JsonResponse(payload)
