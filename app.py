import json
import os
import sys

from flask import Flask, Response, jsonify, request
from loguru import logger

from config import Config
from services import (
    analytics,
    insight_service,
    mood_service,
    summary_service,
    tools,
)
from services.context import load_persona
from services.errors import (
    DuplicateError,
    StoreError,
    UpstreamGenerationError,
    ValidationError,
)
from services.ollama_service import OllamaClient
from services.store import MoodStore
from services.timestamps import parse_day, utcnow
from services.turn import TurnCoordinator


def configure_logging(config=Config):
    """stderr at LOG_LEVEL; combined and error files when LOG_DIR is set."""
    logger.remove()
    logger.add(sys.stderr, level=config.LOG_LEVEL)
    if config.LOG_DIR:
        os.makedirs(config.LOG_DIR, exist_ok=True)
        logger.add(
            os.path.join(config.LOG_DIR, "combined.log"),
            level=config.LOG_LEVEL,
            rotation="10 MB",
            retention=5,
        )
        logger.add(
            os.path.join(config.LOG_DIR, "error.log"),
            level="ERROR",
            rotation="10 MB",
            retention=5,
        )


def send_response(status=200, data=None, error=None, message=None):
    """Standard envelope: success flag plus whichever fields are set."""
    body = {"success": 200 <= status < 300}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    if error is not None:
        body["error"] = error
    return jsonify(body), status


def _dump(value):
    if isinstance(value, list):
        return [_dump(v) for v in value]
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    return value


def _sse(event):
    return f"data: {json.dumps(event)}\n\n"


def create_app(config=Config, store=None, generator=None, clock=utcnow):
    """Build the app with its storage and generator handles.

    Tests pass their own store and a fake generator; production builds both
    from config once per process.
    """
    app = Flask(__name__)
    app.config.from_object(config)

    if store is None:
        store = MoodStore(config.DATABASE_PATH)
        store.connect()
    if generator is None:
        generator = OllamaClient(
            base_url=config.OLLAMA_BASE_URL,
            model=config.OLLAMA_MODEL,
            timeout=config.OLLAMA_TIMEOUT,
        )
    persona, _profile = load_persona(config.PROFILE_PATH)
    coordinator = TurnCoordinator(store, generator, persona, clock=clock)
    default_days = config.TREND_DEFAULT_DAYS

    app.extensions["mood_store"] = store
    app.extensions["turn_coordinator"] = coordinator

    def _window():
        return analytics.default_window(
            request.args.get("startDate"),
            request.args.get("endDate"),
            days=default_days,
            clock=clock,
        )

    def _body():
        return request.get_json(silent=True) or {}

    @app.errorhandler(ValidationError)
    def handle_validation(e):
        return send_response(400, error=str(e))

    @app.errorhandler(DuplicateError)
    def handle_duplicate(e):
        return send_response(409, error=str(e))

    @app.errorhandler(StoreError)
    def handle_store(e):
        logger.error(f"Store error on {request.path}: {e}")
        return send_response(500, error=str(e))

    @app.errorhandler(UpstreamGenerationError)
    def handle_upstream(e):
        logger.error(f"Generation error on {request.path}: {e}")
        return send_response(503, error="AI service is not available", data={"details": str(e)})

    @app.route("/")
    def index():
        return jsonify({"message": "Welcome to SinagTala API"})

    # -- moods --------------------------------------------------------------

    @app.route("/api/mood", methods=["POST"])
    def save_mood():
        body = _body()
        entry = mood_service.save_mood_entry(
            store,
            body.get("userId"),
            body.get("mood"),
            note=body.get("note", body.get("message")),
        )
        return send_response(201, data=_dump(entry))

    @app.route("/api/mood/<user_id>")
    def mood_entries(user_id):
        start, end = _window()
        return send_response(data=_dump(mood_service.list_mood_entries(store, user_id, start, end)))

    @app.route("/api/mood/calendar/<user_id>")
    def mood_calendar(user_id):
        start, end = _window()
        return send_response(data=_dump(analytics.daily_summary_list(store, user_id, start, end)))

    @app.route("/api/mood/day/<user_id>/<day>")
    def mood_day(user_id, day):
        return send_response(data=_dump(mood_service.day_moods(store, user_id, day)))

    @app.route("/api/mood/trends/<user_id>")
    def mood_trends(user_id):
        start, end = _window()
        return send_response(data=_dump(analytics.get_trends(store, user_id, start, end)))

    # -- chat ---------------------------------------------------------------

    @app.route("/api/chat/status")
    def chat_status():
        status = generator.status()
        if status["status"] == "online":
            return send_response(data=status)
        return send_response(503, error=status["message"], data=status["details"])

    @app.route("/api/chat/logs/<user_id>")
    def chat_logs(user_id):
        day = request.args.get("date")
        logs = mood_service.chat_logs(
            store, user_id, day=parse_day(day) if day else None, limit=config.CHAT_LOG_LIMIT
        )
        return send_response(data=_dump(logs))

    @app.route("/api/chat/message", methods=["POST"])
    def chat_message():
        body = _body()
        user_id = body.get("userId")
        message = body.get("message")
        current_mood = body.get("currentMood")

        if request.args.get("stream") != "true":
            text = coordinator.reply(user_id, message, current_mood)
            return send_response(data={"response": text})

        turn = coordinator.stream(user_id, message, current_mood)

        def generate():
            try:
                for event in turn:
                    yield _sse(event)
            finally:
                # Runs on client disconnect too; stops relaying and frees upstream
                turn.close()

        return Response(
            generate(),
            mimetype="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    @app.route("/api/chat/summary/<user_id>/<day>")
    def day_summary(user_id, day):
        summary = summary_service.get_or_create_day_summary(store, generator, user_id, day)
        if summary is None:
            return send_response(404, error="No data found for this day")
        return send_response(data=_dump(summary))

    # -- dashboard ----------------------------------------------------------

    @app.route("/api/dashboard/<user_id>")
    def dashboard(user_id):
        start, end = analytics.timeframe_window(request.args.get("timeframe"), clock=clock)
        summary = summary_service.get_user_summary(store, user_id)
        earliest = analytics.earliest_data_date(store, user_id)
        return send_response(
            data={
                "calendarData": _dump(analytics.daily_summary_list(store, user_id, start, end)),
                "trendData": _dump(analytics.get_trends(store, user_id, start, end)),
                "userSummary": summary.summary_data() if summary else {},
                "earliestDataDate": earliest.isoformat() if earliest else None,
            }
        )

    @app.route("/api/dashboard/<user_id>/ai-insight")
    def ai_insight(user_id):
        report = insight_service.generate_insight(store, generator, user_id, clock=clock)
        return send_response(data=_dump(report))

    @app.route("/api/dashboard/<user_id>/refresh", methods=["POST"])
    def refresh_summary(user_id):
        summary = summary_service.refresh_user_summary(store, user_id, clock=clock)
        return send_response(data=summary.summary_data())

    @app.route("/api/tools/<user_id>/<kind>", methods=["POST"])
    def run_tool(user_id, kind):
        result = tools.execute_tool(store, user_id, kind, _body(), clock=clock)
        return send_response(data=result)

    return app


if __name__ == "__main__":
    configure_logging(Config)
    app = create_app(Config)
    logger.info(f"Server running on port {Config.PORT}")
    app.run(
        host=Config.HOST,
        port=Config.PORT,
        debug=Config.DEBUG,
        threaded=True,
    )
