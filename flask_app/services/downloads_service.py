"""
Service for server activities (downloads, transcodes, scans) reported by Plex.
"""
from typing import Any

from flask_app.extensions import DashboardContext
from plex_dashboard.templating import apply_formats, formatted_entry


class DownloadsService:

    def __init__(self, context: DashboardContext):
        self.context = context

    def get_activities(self) -> dict[str, Any]:
        """
        Current Plex activities rendered through every downloads format.

        Raises:
            UpstreamError: Plex is not configured or did not answer
        """
        client = self.context.settings.plex_client()
        formats = self.context.formats.definitions('downloads')

        activities = []
        for activity in client.get_activities():
            base = {
                'uuid': activity.get('uuid'),
                'title': activity.get('title'),
                'subtitle': activity.get('subtitle'),
                'progress': activity.get('progress'),
                'type': activity.get('type'),
            }
            activities.append(formatted_entry(apply_formats(formats, base), base))

        return {'total': len(activities), 'activities': activities}
