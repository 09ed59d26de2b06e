#!/usr/bin/env python3
"""
Retirement Paycheck - voice intake and plan automation server

Features:
- Voice conversation: Deepgram transcription -> advisor reply -> ElevenLabs audio
- Text conversation, data extraction and follow-up questions
- Income Conductor automation with live progress over Socket.IO
  (clients send `join` with their sessionId) and a polling fallback
- Webhook for the hosted voice agent (/run-automation)
- Account-transfer PDF form filling

Run:
    python3 web_app.py

Then point the front end at: http://localhost:3001
"""

import json
import threading
import uuid
from datetime import datetime
from urllib.parse import quote

from flask import Flask, Response, jsonify, request
from flask_cors import CORS
from flask_socketio import SocketIO, join_room, leave_room

from paycheck_agent import __version__
from paycheck_agent.automation import (
    AutomationBusyError,
    AutomationError,
    AutomationRegistry,
    IncomeConductorAutomation,
)
from paycheck_agent.config import get_settings
from paycheck_agent.conversation import ConversationError, RetirementAdvisor, parse_history
from paycheck_agent.extraction import (
    AutomationFormData,
    IntakeData,
    build_form_data,
    describe_form_data,
    form_data_from_webhook,
)
from paycheck_agent.forms import FormFillError, fill_pdf_form, validate_form_fields
from paycheck_agent.llm import get_llm_manager
from paycheck_agent.relay import ProgressRelay
from paycheck_agent.storage import IntakeStore
from paycheck_agent.voice import SpeechToText, SynthesisError, TextToSpeech, TranscriptionError
from paycheck_agent.voice.speech_to_text import NO_SPEECH_MESSAGE

MAX_AUDIO_BYTES = 10 * 1024 * 1024
EXPOSED_HEADERS = "X-Transcription,X-AI-Response,X-Extracted-Data,X-Follow-Up-Questions"

settings = get_settings()

app = Flask(__name__)
app.secret_key = settings.secret_key or uuid.uuid4().hex
app.config["MAX_CONTENT_LENGTH"] = MAX_AUDIO_BYTES + 1024 * 1024

CORS(
    app,
    origins=settings.cors_origins,
    supports_credentials=True,
    expose_headers=EXPOSED_HEADERS.split(","),
)
socketio = SocketIO(app, cors_allowed_origins=settings.cors_origins, async_mode="threading")

relay = ProgressRelay(emit=socketio.emit)
automations = AutomationRegistry()

_services = {}
_services_lock = threading.Lock()


def _service(name, factory):
    with _services_lock:
        if name not in _services:
            _services[name] = factory()
        return _services[name]


def get_advisor() -> RetirementAdvisor:
    def build():
        llm = get_llm_manager(settings) if settings.has_llm else None
        return RetirementAdvisor(llm)
    return _service("advisor", build)


def get_stt() -> SpeechToText:
    return _service("stt", lambda: SpeechToText(
        api_key=settings.deepgram_api_key, model=settings.deepgram_model
    ))


def get_tts() -> TextToSpeech:
    return _service("tts", lambda: TextToSpeech(
        api_key=settings.elevenlabs_api_key,
        voice=settings.elevenlabs_voice,
        model=settings.elevenlabs_model,
    ))


def get_store() -> IntakeStore:
    return _service("store", lambda: IntakeStore(settings.supabase_url, settings.supabase_key))


def _now() -> str:
    return datetime.now().isoformat()


def _error(message: str, status: int):
    return jsonify({"success": False, "error": message}), status


class InvalidRequest(Exception):
    """Request body or field has the wrong shape."""


def _json_body(required: bool = True) -> dict:
    """The JSON request body, which must be an object."""
    data = request.get_json(silent=True)
    if data is None and not required:
        return {}
    if not isinstance(data, dict):
        raise InvalidRequest("Request body must be a JSON object")
    return data


def _extracted_field(value) -> IntakeData:
    if value is None or value == "":
        return IntakeData()
    if not isinstance(value, dict):
        raise InvalidRequest("extractedData must be a JSON object")
    return IntakeData.from_dict(value)


def _string_field(data: dict, key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidRequest(f"{key} must be a string")
    return value.strip()


def _json_field(value, default):
    """Form fields arrive as JSON strings; JSON bodies as objects."""
    if isinstance(value, str):
        try:
            return json.loads(value) if value.strip() else default
        except json.JSONDecodeError:
            return default
    return value if value is not None else default


def _encode_header(value) -> str:
    text = value if isinstance(value, str) else json.dumps(value)
    return quote(text, safe="-_.!~*'()")


# ============================================
# SOCKET.IO
# ============================================

@socketio.on("connect")
def on_connect():
    print(f"  [Relay] Client connected: {request.sid}")


@socketio.on("disconnect")
def on_disconnect():
    print(f"  [Relay] Client disconnected: {request.sid}")


@socketio.on("join")
def on_join(data):
    session_id = (data or {}).get("sessionId")
    if session_id:
        join_room(session_id)
        print(f"  [Relay] {request.sid} joined {session_id}")


@socketio.on("leave")
def on_leave(data):
    session_id = (data or {}).get("sessionId")
    if session_id:
        leave_room(session_id)


@app.errorhandler(413)
def payload_too_large(_error_):
    return _error("Audio file too large (max 10MB)", 413)


@app.errorhandler(InvalidRequest)
def bad_request(e):
    return _error(str(e), 400)


# ============================================
# STATUS
# ============================================

@app.route("/", methods=["GET"])
def index():
    return jsonify({
        "service": "Retirement Paycheck automation server",
        "version": __version__,
        "status": "running",
    })


@app.route("/health", methods=["GET"])
def health():
    return jsonify({
        "status": "Server is running",
        "timestamp": _now(),
        "port": settings.port,
    })


# ============================================
# VOICE
# ============================================

@app.route("/api/voice/process", methods=["POST"])
def voice_process():
    """Transcribe a clip, run one conversation turn and answer with speech."""
    audio = request.files.get("audio")
    if audio is None:
        return _error("No audio file provided", 400)
    if not (audio.mimetype or "").startswith("audio/"):
        return _error("Only audio files are allowed", 400)

    audio_bytes = audio.read()
    if not audio_bytes:
        return _error("No audio file provided", 400)
    if len(audio_bytes) > MAX_AUDIO_BYTES:
        return _error("Audio file too large (max 10MB)", 400)

    history = parse_history(_json_field(request.form.get("conversationHistory"), []))
    known = _extracted_field(_json_field(request.form.get("extractedData"), {}))

    try:
        transcription = get_stt().transcribe(audio_bytes, audio.filename or "")
    except TranscriptionError as e:
        status = 400 if str(e) == NO_SPEECH_MESSAGE else 500
        return _error(str(e), status)

    try:
        turn = get_advisor().process_turn(transcription, history, known)
        audio_out = get_tts().synthesize(turn.ai_response)
    except (ConversationError, SynthesisError) as e:
        print(f"  [TTS] ❌ Voice processing error: {e}")
        return _error(str(e), 500)

    session_id = request.form.get("sessionId")
    if session_id:
        get_store().save_intake(session_id, turn.extracted)

    response = Response(audio_out, mimetype="audio/mpeg")
    response.headers["X-Transcription"] = _encode_header(transcription)
    response.headers["X-AI-Response"] = _encode_header(turn.ai_response)
    response.headers["X-Extracted-Data"] = _encode_header(turn.extracted.to_dict())
    response.headers["X-Follow-Up-Questions"] = _encode_header(turn.follow_up_questions)
    response.headers["Access-Control-Expose-Headers"] = EXPOSED_HEADERS
    return response


@app.route("/api/voice/text-to-speech", methods=["POST"])
def voice_text_to_speech():
    data = _json_body(required=False)
    text = _string_field(data, "text")
    if not text:
        return _error("Text is required", 400)

    try:
        audio_out = get_tts().synthesize(text)
    except SynthesisError as e:
        return _error(str(e), 500)

    response = Response(audio_out, mimetype="audio/mpeg")
    response.headers["Content-Length"] = str(len(audio_out))
    return response


@app.route("/api/voice/test-connection", methods=["GET"])
def voice_test_connection():
    deepgram_ok = get_stt().test_connection()
    elevenlabs_ok = get_tts().test_connection()
    return jsonify({
        "success": True,
        "connected": deepgram_ok and elevenlabs_ok,
        "services": {
            "deepgram": {"name": "Deepgram (STT)", "connected": deepgram_ok},
            "elevenlabs": {"name": "ElevenLabs (TTS)", "connected": elevenlabs_ok},
        },
        "timestamp": _now(),
    })


# ============================================
# CONVERSATION
# ============================================

@app.route("/api/conversation", methods=["POST"])
def conversation():
    data = _json_body(required=False)
    user_message = _string_field(data, "userMessage")
    if not user_message:
        return _error("User message is required", 400)

    history = parse_history(data.get("conversationHistory") or [])
    known = _extracted_field(data.get("extractedData"))

    try:
        turn = get_advisor().process_turn(user_message, history, known)
    except ConversationError as e:
        return _error(str(e), 500)

    session_id = data.get("sessionId")
    if session_id:
        get_store().save_intake(session_id, turn.extracted)

    return jsonify(turn.to_dict())


@app.route("/api/extract-data", methods=["POST"])
def extract_data():
    data = _json_body(required=False)
    user_message = _string_field(data, "userMessage")
    if not user_message:
        return _error("User message is required", 400)

    history = parse_history(data.get("conversationHistory") or [])
    extracted = get_advisor().extract_data(user_message, history)
    return jsonify({"success": True, "extractedData": extracted.to_dict(), "timestamp": _now()})


@app.route("/api/follow-up-questions", methods=["POST"])
def follow_up_questions():
    data = _json_body(required=False)
    known = _extracted_field(data.get("extractedData"))
    history = parse_history(data.get("conversationHistory") or [])
    questions = get_advisor().follow_up_questions(known, history)
    return jsonify({"success": True, "questions": questions, "timestamp": _now()})


@app.route("/api/form-data", methods=["POST"])
def form_data():
    """Turn extracted conversation data into the automation form."""
    data = _json_body()

    intake = _extracted_field(data.get("extractedData"))
    form = build_form_data(intake, session_id=data.get("sessionId"))
    return jsonify({
        "success": True,
        "formData": form.to_dict(),
        "display": describe_form_data(intake, form),
        "timestamp": _now(),
    })


# ============================================
# AUTOMATION
# ============================================

def _record_result(automation: IncomeConductorAutomation, payload=None, error=None):
    get_store().save_automation_result(automation.session_id, automation.form_data, payload, error=error)


@app.route("/start-automation", methods=["POST"])
def start_automation():
    """Start a background run; progress goes to the session's Socket.IO room."""
    data = _json_body()

    form = AutomationFormData.from_dict(data)
    form.session_id = form.session_id or str(uuid.uuid4())
    automation = IncomeConductorAutomation(form, settings=settings, relay=relay)

    try:
        automations.register(automation)
    except AutomationBusyError as e:
        return _error(str(e), 409)

    session_id = automation.session_id
    relay.publish_start(session_id)
    print(f"  [Automation] Starting session {session_id}")

    def run_automation():
        try:
            result = automation.run()
        except AutomationError as e:
            relay.publish_result(session_id, {"success": False, "error": str(e)})
            _record_result(automation, error=str(e))
            return
        payload = {"success": True, **result.to_dict()}
        relay.publish_result(session_id, payload)
        _record_result(automation, payload)

    thread = threading.Thread(target=run_automation, daemon=True)
    thread.start()

    return jsonify({"success": True, "sessionId": session_id})


@app.route("/run-automation", methods=["POST"])
def run_automation_webhook():
    """
    Webhook for the hosted voice agent.

    Runs synchronously and answers with the plan figures. Errors are
    reported in the body with a 200 so the agent can read them out.
    """
    data = _json_body(required=False)
    print(f"  [Automation] Webhook data: {json.dumps(data)}")

    form = form_data_from_webhook(
        data.get("savedmoney"),
        data.get("retirementdate"),
        data.get("birthday"),
        session_id=data.get("sessionId") or str(uuid.uuid4()),
    )
    automation = IncomeConductorAutomation(form, settings=settings, relay=relay, broadcast=True)

    try:
        automations.register(automation)
    except AutomationBusyError as e:
        return _error(str(e), 409)

    relay.publish_start(None)
    try:
        result = automation.run()
    except AutomationError as e:
        relay.publish_result(None, {"success": False, "message": str(e)})
        _record_result(automation, error=str(e))
        return jsonify({"success": False, "error": str(e)})

    payload = {"success": True, **result.to_dict()}
    relay.publish_result(None, payload)
    _record_result(automation, payload)
    return jsonify(result.to_webhook_dict())


@app.route("/api/automation/progress/<session_id>", methods=["GET"])
def automation_progress(session_id):
    """Polling fallback for clients without a socket."""
    automation = automations.get(session_id)
    known = automation is not None or session_id in relay.sessions()
    if not known:
        return _error("Session not found", 404)

    since = request.args.get("since", default=0, type=int)
    state = automation.state.to_dict() if automation else None
    result = relay.result(session_id)
    if result is None and automation and automation.state.result:
        result = automation.state.result.to_dict()

    return jsonify({
        "success": True,
        "status": state["status"] if state else "unknown",
        "progress": relay.history(session_id, since=since),
        "state": state,
        "result": result,
    })


@app.route("/api/automation/stop", methods=["POST"])
def automation_stop():
    data = _json_body()

    session_id = data.get("sessionId")
    if not session_id:
        return _error("No sessionId provided", 400)

    if not automations.stop(session_id):
        return _error("Session not found", 404)
    return jsonify({"success": True, "stopped": True})


# ============================================
# FORMS
# ============================================

@app.route("/fill-form", methods=["POST"])
def fill_form():
    data = _json_body()

    try:
        values = validate_form_fields(data)
    except FormFillError as e:
        return _error(str(e), 400)

    try:
        pdf_bytes = fill_pdf_form(settings.pdf_template_path, values)
    except FormFillError as e:
        print(f"  [Form] ❌ {e}")
        return _error(str(e), 500)

    return Response(
        pdf_bytes,
        mimetype="application/pdf",
        headers={"Content-Disposition": 'attachment; filename="account-transfer.pdf"'},
    )


if __name__ == "__main__":
    print(f"""
╔═══════════════════════════════════════════════════════════════╗
║     RETIREMENT PAYCHECK - VOICE INTAKE & PLAN AUTOMATION       ║
╠═══════════════════════════════════════════════════════════════╣
║  Voice: Deepgram transcription → advisor → ElevenLabs speech   ║
║  Automation: Income Conductor via Playwright                   ║
║  Progress: Socket.IO rooms + polling fallback                  ║
╚═══════════════════════════════════════════════════════════════╝

Server running on http://localhost:{settings.port}
    """)
    print(f"  LLM configured: {'yes' if settings.has_llm else 'no (offline fallback)'}")
    print(f"  Supabase: {'yes' if settings.has_supabase else 'no'}")

    socketio.run(app, host="0.0.0.0", port=settings.port, allow_unsafe_werkzeug=True)
