"""URL routing for the viewer API."""

from django.urls import re_path
from django.urls.resolvers import URLPattern, URLResolver

from .views import ViewerViewSet

urlpatterns: list[URLPattern | URLResolver] = [
    re_path(r'^version/?$', ViewerViewSet.as_view({'get': 'version'}), name='version'),
    re_path(r'^users/?$', ViewerViewSet.as_view({'get': 'users'}), name='users'),
    re_path(r'^devices/?$', ViewerViewSet.as_view({'get': 'devices'}), name='devices'),
    re_path(r'^last/?$', ViewerViewSet.as_view({'get': 'last'}), name='last'),
    re_path(r'^history/?$', ViewerViewSet.as_view({'get': 'history'}), name='history'),
    re_path(r'^state/?$', ViewerViewSet.as_view({'get': 'state'}), name='state'),
]
