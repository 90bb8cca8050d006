import unittest
from unittest.mock import MagicMock, patch

from flask_app.extensions import DashboardContext
from flask_app.services.health_service import HealthService
from plex_dashboard.api_client import PlexClient, TautulliClient, UpstreamError
from plex_dashboard.cache import CacheSet
from plex_dashboard.models import DashboardConfig

CONFIGURED = DashboardConfig(
    plex_url='http://plex:32400',
    plex_token='tok',
    tautulli_url='http://tautulli:8181',
    tautulli_api_key='key',
)


def make_service(config):
    settings = MagicMock()
    settings.get_config.return_value = config
    context = DashboardContext(
        settings=settings,
        formats=MagicMock(),
        sections=MagicMock(),
        caches=CacheSet.create(),
        refresher=MagicMock(),
        log_handler=MagicMock(),
    )
    return HealthService(context)


class HealthServiceTests(unittest.TestCase):
    def test_summary_without_checks(self):
        data = make_service(DashboardConfig(plex_url='http://plex')).health()

        self.assertEqual(data['status'], 'ok')
        self.assertEqual(data['config'], {
            'plexUrl': 'http://plex',
            'tautulliUrl': 'Not configured',
            'hasPlexToken': False,
            'hasTautulliKey': False,
        })
        self.assertNotIn('services', data)

    @patch.object(TautulliClient, 'status')
    @patch.object(PlexClient, 'get_identity')
    def test_checks_both_services(self, mock_identity, mock_status):
        mock_identity.return_value = {'friendlyName': 'Basement'}
        mock_status.return_value = {'response': {'result': 'success', 'data': {'version': '2.13'}}}

        services = make_service(CONFIGURED).health(check=True)['services']

        self.assertEqual(services['plex'], {'configured': True, 'online': True, 'serverName': 'Basement'})
        self.assertTrue(services['tautulli']['online'])
        self.assertEqual(services['tautulli']['version'], '2.13')
        mock_identity.assert_called_once_with(timeout=5)

    @patch.object(PlexClient, 'get_identity')
    def test_plex_offline(self, mock_identity):
        mock_identity.side_effect = UpstreamError('refused')

        result = make_service(CONFIGURED).check_service('plex')

        self.assertEqual(result, {'status': 'offline', 'message': 'Failed to connect to Plex', 'error': 'refused'})

    @patch.object(TautulliClient, 'status')
    def test_tautulli_invalid_response(self, mock_status):
        payload = {'response': {'result': 'error', 'message': 'Invalid apikey'}}
        mock_status.return_value = payload

        result = make_service(CONFIGURED).check_service('tautulli')

        self.assertEqual(result['status'], 'offline')
        self.assertEqual(result['message'], 'Tautulli returned an invalid response')
        self.assertEqual(result['responseData'], payload)
        mock_status.assert_called_once_with(timeout=8)

    def test_unconfigured(self):
        service = make_service(DashboardConfig())
        self.assertEqual(service.check_service('plex')['status'], 'unconfigured')
        self.assertEqual(service.check_service('tautulli')['status'], 'unconfigured')


if __name__ == '__main__':
    unittest.main()
