"""
API views for the map viewer.

Each endpoint loads data from the recorder into the shared viewer state and
returns the resulting values, or returns the state as it is.
"""
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from asgiref.sync import async_to_sync
from rest_framework import status, viewsets
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response

from track_viewer.recorder import (RecorderClient, RecorderDecodeError,
                                   get_users, get_version)
from track_viewer.serializers import HistoryQuerySerializer
from track_viewer.state import ViewerState, get_viewer_state

logger = logging.getLogger(__name__)

HISTORY_FIELDS = (
    'selected_user', 'selected_device', 'start_date_time', 'end_date_time',
    'location_history', 'location_count', 'filtered_location_history',
    'lat_lngs', 'groups', 'distance_travelled',
)


def run_with_recorder(
    state: ViewerState,
    load: Callable[[RecorderClient], Awaitable[Any]],
) -> Any:
    """Open a recorder client and run ``load`` with it from sync code."""
    async def run() -> Any:
        async with state.settings.create_client() as client:
            return await load(client)

    return async_to_sync(run)()


def recorder_error(e: RecorderDecodeError) -> Response:
    """502 response for a failed recorder call."""
    logger.warning("Recorder request failed: %s", e)
    return Response(
        {'error': "Recorder returned no usable data", 'detail': str(e)},
        status=status.HTTP_502_BAD_GATEWAY,
    )


class ViewerViewSet(viewsets.ViewSet):
    """
    Endpoints for the map viewer.

    - GET /version/: Recorder version
    - GET /users/: Users known to the recorder
    - GET /devices/: Devices of every user
    - GET /last/: Last location of every device
    - GET /history/: Location history for a selection and time range
    - GET /state/: Current viewer state without fetching
    """

    permission_classes = [AllowAny]

    def version(self, request: Request) -> Response:
        state = get_viewer_state()
        try:
            version = run_with_recorder(state, get_version)
        except RecorderDecodeError as e:
            return recorder_error(e)
        state.set_recorder_version(version)
        return Response({'version': version})

    def users(self, request: Request) -> Response:
        state = get_viewer_state()
        try:
            users = run_with_recorder(state, get_users)
        except RecorderDecodeError as e:
            return recorder_error(e)
        state.set_users(users)
        return Response({'results': users})

    def devices(self, request: Request) -> Response:
        """Fetch users and their devices, replacing both in the state."""
        state = get_viewer_state()
        try:
            run_with_recorder(state, state.load_users)
        except RecorderDecodeError as e:
            return recorder_error(e)
        return Response({'results': state.devices})

    def last(self, request: Request) -> Response:
        state = get_viewer_state()
        run_with_recorder(state, state.load_last_locations)
        return Response(state.last_locations)

    def history(self, request: Request) -> Response:
        """
        Load location history and return it with the derived views.

        Query parameters:
        - start: ISO 8601 datetime in UTC
        - end: ISO 8601 datetime in UTC
        - user: Only this user (empty = all users)
        - device: Only this device of ``user``
        """
        serializer = HistoryQuerySerializer(data=request.query_params)
        if not serializer.is_valid():
            return Response({'error': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)
        query = serializer.validated_data

        state = get_viewer_state()
        if 'user' in query or 'device' in query:
            state.set_selection(query.get('user'), query.get('device'))
        state.set_time_range(
            query.get('start', state.start_date_time),
            query.get('end', state.end_date_time),
        )

        if not state.devices:
            try:
                run_with_recorder(state, state.load_users)
            except RecorderDecodeError as e:
                return recorder_error(e)
        run_with_recorder(state, state.load_location_history)

        snapshot = state.snapshot()
        return Response({field: snapshot[field] for field in HISTORY_FIELDS})

    def state(self, request: Request) -> Response:
        return Response(get_viewer_state().snapshot())
