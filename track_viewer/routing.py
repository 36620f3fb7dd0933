"""
WebSocket URL routing for the viewer.
"""
from django.urls import path

from . import consumers

websocket_urlpatterns = [
    path('ws/locations/', consumers.LocationConsumer.as_asgi()),
]
