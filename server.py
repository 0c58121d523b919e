from flask import Flask, request, jsonify
from dotenv import load_dotenv
import logging
import os
from logging.handlers import RotatingFileHandler

from clock import SystemClock
from config import DISPLAY_CLIENT_TIMEOUT, ConfigInvalid, env_settings_file, env_timezone
from controller import SchedulerController, UnknownTarget
from core import BreakScheduler
from display import NotificationFeed, WebOverlayPresenter
from meeting import ProcessMeetingProbe
from quotes import FetchFailed, QuoteScheduler, ZenQuotesFetcher
from settings import SettingsStore

logger = logging.getLogger(__name__)

DEFAULT_TARGET = 'wellness'


def setup_logging():
    level = os.getenv('KODA_LOG_LEVEL', 'INFO').upper()
    handlers = [logging.StreamHandler()]
    log_file = os.getenv('KODA_LOG_FILE')
    if log_file:
        handlers.append(RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=3))
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


def build_services(clock=None, settings_path=None):
    """Wires the schedulers with their production collaborators."""
    clock = clock or SystemClock()
    settings = SettingsStore(settings_path or env_settings_file())
    overlay = WebOverlayPresenter(clock, client_timeout=DISPLAY_CLIENT_TIMEOUT)
    feed = NotificationFeed(clock)

    breaks = BreakScheduler(clock, settings, ProcessMeetingProbe(), overlay)
    quotes = QuoteScheduler(
        clock, settings, ZenQuotesFetcher(), feed,
        timezone=env_timezone(), on_click=overlay.show_quote,
    )
    controller = SchedulerController(settings, [breaks, quotes])
    return controller, overlay, feed


def create_app(controller, overlay, feed):
    app = Flask(__name__)

    def _target():
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return DEFAULT_TARGET
        return data.get('target', DEFAULT_TARGET)

    @app.errorhandler(UnknownTarget)
    def unknown_target(e):
        return jsonify({'success': False, 'error': f'Unknown scheduler: {e.args[0]}'}), 404

    # --- API ENDPOINTS ---

    @app.route('/api/state', methods=['GET'])
    def get_state():
        """Endpoint for the tray and display clients to poll (about once a second)."""
        return jsonify({
            'statuses': controller.statuses(),
            'tray': controller.tray_label(),
            'overlay': overlay.snapshot(),
        })

    @app.route('/api/pause', methods=['POST'])
    def pause_route():
        """Endpoint for the tray's pause checkbox and the pause IPC message."""
        target = _target()
        controller.pause(target)
        return jsonify({'success': True, 'target': target, 'status': controller.status_of(target)})

    @app.route('/api/resume', methods=['POST'])
    def resume_route():
        target = _target()
        controller.resume(target)
        return jsonify({'success': True, 'target': target, 'status': controller.status_of(target)})

    @app.route('/api/settings', methods=['GET'])
    def get_settings():
        return jsonify(controller.settings.get_settings())

    @app.route('/api/settings', methods=['POST'])
    def save_settings():
        """Saves settings and restarts both schedulers with them."""
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({'success': False, 'error': 'Invalid request format.'}), 400
        try:
            saved = controller.apply_config(data)
        except ConfigInvalid as e:
            return jsonify({'success': False, 'error': str(e)}), 400
        except OSError as e:
            logger.error(f"Could not save settings: {e}")
            return jsonify({'success': False, 'error': 'Could not save settings.'}), 500
        return jsonify({'success': True, 'settings': saved})

    @app.route('/api/overlay/dismiss', methods=['POST'])
    def dismiss_overlay():
        if overlay.dismiss():
            return jsonify({'success': True})
        return jsonify({'success': False, 'error': 'No overlay is showing.'}), 409

    @app.route('/api/test_quote', methods=['POST'])
    def test_quote():
        """Fetches and shows a quote right away, outside the hourly schedule."""
        try:
            quote = controller.schedulers['quotes'].send_now()
        except FetchFailed as e:
            logger.error(f"Test quote failed: {e}")
            return jsonify({'success': False, 'error': str(e)}), 502
        return jsonify({'success': True, 'quote': {'text': quote.text, 'author': quote.author}})

    @app.route('/api/notifications', methods=['GET'])
    def list_notifications():
        return jsonify(feed.items())

    @app.route('/api/notifications/<int:notification_id>/click', methods=['POST'])
    def click_notification(notification_id):
        if feed.click(notification_id):
            return jsonify({'success': True})
        return jsonify({'success': False, 'error': 'Unknown notification.'}), 404

    return app


def main():
    # Load environment variables from .env file
    load_dotenv()
    setup_logging()

    controller, overlay, feed = build_services()
    app = create_app(controller, overlay, feed)
    controller.start_all()

    host = os.getenv('KODA_HOST', '127.0.0.1')
    port = int(os.getenv('KODA_PORT', '5055'))
    try:
        # The reloader would start a second set of schedulers.
        app.run(host=host, port=port, use_reloader=False)
    finally:
        controller.shutdown()


if __name__ == '__main__':
    main()
