"""
Speech-to-Text for uploaded voice clips.

Deepgram's pre-recorded API is the primary engine. When no Deepgram key is
configured, clips are transcribed locally with faster-whisper (install the
`whisper` extra).
"""

import io
from dataclasses import dataclass
from typing import Optional

import requests

DEEPGRAM_LISTEN_URL = "https://api.deepgram.com/v1/listen"
DEEPGRAM_PROJECTS_URL = "https://api.deepgram.com/v1/projects"

_MIMETYPES = (
    (".mp3", "audio/mpeg"),
    (".m4a", "audio/mp4"),
    (".webm", "audio/webm"),
    (".ogg", "audio/ogg"),
    (".flac", "audio/flac"),
)

NO_SPEECH_MESSAGE = "No speech detected in audio. Please try speaking more clearly."


class TranscriptionError(Exception):
    """Audio could not be turned into text."""


@dataclass
class TranscriptionResult:
    """Result from speech-to-text transcription."""
    text: str
    language: str = "en"
    confidence: float = 0.0
    engine: str = "deepgram"


def guess_mimetype(filename: str) -> str:
    """Audio mimetype from the upload's file name (default audio/wav)."""
    name = (filename or "").lower()
    for extension, mimetype in _MIMETYPES:
        if extension in name:
            return mimetype
    return "audio/wav"


def _error_for_status(status_code: int, detail: str) -> TranscriptionError:
    if status_code == 401:
        return TranscriptionError("Deepgram authentication failed. Please check your API key.")
    if status_code == 400:
        return TranscriptionError("Invalid audio format. Please try a different audio file.")
    if status_code == 429:
        return TranscriptionError("Rate limit exceeded. Please try again in a moment.")
    return TranscriptionError(f"Speech-to-text conversion failed: {status_code} {detail}".strip())


class SpeechToText:
    """
    Transcribes a whole audio clip in one request.

    Args:
        api_key: Deepgram API key; None switches to local faster-whisper
        model: Deepgram model (nova-2)
        language: Language code sent to Deepgram
        whisper_model_size: faster-whisper model used for the local fallback
        timeout: HTTP timeout in seconds
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "nova-2",
        language: str = "en-US",
        whisper_model_size: str = "base",
        timeout: int = 60,
    ):
        self.api_key = api_key
        self.model = model
        self.language = language
        self.whisper_model_size = whisper_model_size
        self.timeout = timeout
        self._whisper = None

    @property
    def engine(self) -> str:
        return "deepgram" if self.api_key else "whisper"

    def transcribe(self, audio_bytes: bytes, filename: str = "") -> str:
        """Return the transcript text, or raise TranscriptionError."""
        return self.transcribe_detailed(audio_bytes, filename).text

    def transcribe_detailed(self, audio_bytes: bytes, filename: str = "") -> TranscriptionResult:
        if not audio_bytes:
            raise TranscriptionError("No audio file provided")

        if self.api_key:
            result = self._transcribe_deepgram(audio_bytes, filename)
        else:
            result = self._transcribe_whisper(audio_bytes)

        if not result.text.strip():
            print("  [STT] ⚠️ No transcription found in response")
            raise TranscriptionError(NO_SPEECH_MESSAGE)

        result.text = result.text.strip()
        print(f"  [STT] ✓ Transcribed {len(audio_bytes)} bytes with {result.engine}")
        return result

    # ── Deepgram ────────────────────────────────────────────────

    def _transcribe_deepgram(self, audio_bytes: bytes, filename: str) -> TranscriptionResult:
        mimetype = guess_mimetype(filename)
        params = {
            "model": self.model,
            "language": self.language,
            "smart_format": "true",
            "punctuate": "true",
        }
        headers = {
            "Authorization": f"Token {self.api_key}",
            "Content-Type": mimetype,
        }
        print(f"  [STT] Sending {mimetype} audio to Deepgram")

        try:
            response = requests.post(
                DEEPGRAM_LISTEN_URL,
                params=params,
                headers=headers,
                data=audio_bytes,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TranscriptionError(f"Speech-to-text conversion failed: {e}") from e

        if response.status_code != 200:
            print(f"  [STT] ❌ Deepgram error {response.status_code}")
            raise _error_for_status(response.status_code, response.text[:200])

        try:
            alternative = response.json()["results"]["channels"][0]["alternatives"][0]
        except (ValueError, KeyError, IndexError, TypeError):
            raise TranscriptionError(NO_SPEECH_MESSAGE)

        return TranscriptionResult(
            text=alternative.get("transcript") or "",
            language=self.language,
            confidence=float(alternative.get("confidence") or 0.0),
            engine="deepgram",
        )

    # ── faster-whisper ──────────────────────────────────────────

    def _load_whisper(self):
        """Lazy load the Whisper model."""
        if self._whisper is None:
            print(f"  [STT] Loading Whisper model '{self.whisper_model_size}'...")
            try:
                from faster_whisper import WhisperModel
            except ImportError as e:
                raise TranscriptionError(
                    "No DEEPGRAM_API_KEY set and faster-whisper is not installed"
                ) from e
            self._whisper = WhisperModel(self.whisper_model_size, device="cpu", compute_type="int8")
            print("  [STT] ✓ Whisper model loaded on cpu")
        return self._whisper

    def _transcribe_whisper(self, audio_bytes: bytes) -> TranscriptionResult:
        model = self._load_whisper()
        try:
            segments, info = model.transcribe(
                io.BytesIO(audio_bytes),
                language=self.language.split("-")[0],
                beam_size=5,
                vad_filter=True,
            )
            text = " ".join(segment.text.strip() for segment in segments)
        except Exception as e:
            raise TranscriptionError(f"Speech-to-text conversion failed: {e}") from e

        return TranscriptionResult(
            text=text,
            language=info.language,
            confidence=info.language_probability,
            engine="whisper",
        )

    def test_connection(self) -> bool:
        """
        Check that Deepgram is reachable with this key.

        Only an authentication failure or a network error counts as down.
        """
        if not self.api_key:
            return False
        try:
            response = requests.get(
                DEEPGRAM_PROJECTS_URL,
                headers={"Authorization": f"Token {self.api_key}"},
                timeout=10,
            )
        except requests.RequestException as e:
            print(f"  [STT] ❌ Deepgram connection test failed: {e}")
            return False
        if response.status_code in (401, 403):
            print("  [STT] ❌ Deepgram authentication failed")
            return False
        print("  [STT] ✓ Deepgram connected")
        return True
