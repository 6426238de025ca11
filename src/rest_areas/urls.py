from django.urls import path

from rest_areas import views

urlpatterns = [
    path("api/v1/health", views.health_view, name="health"),
    path("api/v1/rest-areas/search", views.rest_area_search_view, name="rest-area-search"),
]
