from django.urls import path

from . import views

app_name = "floorplan"

urlpatterns = [
    path("upload/", views.FloorPlanUploadAPI.as_view(), name="upload"),
    path("file/<int:pk>/", views.file_detail_view, name="file_detail"),
    path("scene/", views.SceneBuildAPI.as_view(), name="scene"),
]
