"""
Text-to-Speech with ElevenLabs.

Replies are rendered to MP3 and returned to the browser, which plays them.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

API_BASE_URL = "https://api.elevenlabs.io/v1"

ELEVENLABS_VOICES = {
    "rachel": "21m00Tcm4TlvDq8ikWAM",   # Calm, professional female
    "drew": "29vD33N1CtxCmqQRPOHJ",      # Well-rounded male
    "domi": "AZnzlk1XvdvUeBnXmlld",      # Strong, confident female
    "dave": "CYw3kZ02Hs0563khs1Fj",      # Conversational male
    "sarah": "EXAVITQu4vr4xnSDxMaL",     # Soft, natural female
    "adam": "pNInz6obpgDQGcFmaJgB",       # Deep, narration male
}

DEFAULT_VOICE = "rachel"
DEFAULT_MODEL = "eleven_monolingual_v1"


class SynthesisError(Exception):
    """Text could not be turned into audio."""


@dataclass
class Voice:
    """An ElevenLabs voice."""
    id: str
    name: str
    category: str = "premade"

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "name": self.name, "category": self.category}


def resolve_voice_id(voice: Optional[str]) -> str:
    """Preset name to voice id; anything else is treated as a raw id."""
    voice = voice or DEFAULT_VOICE
    return ELEVENLABS_VOICES.get(voice.lower(), voice)


class TextToSpeech:
    """
    ElevenLabs text-to-speech over the REST API.

    Args:
        api_key: ElevenLabs API key
        voice: Preset name (see ELEVENLABS_VOICES) or a raw voice id
        model: ElevenLabs model id
        stability: Voice stability 0.0-1.0 (lower = more expressive)
        similarity_boost: Voice clarity 0.0-1.0
        style: Style exaggeration 0.0-1.0
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        voice: str = DEFAULT_VOICE,
        model: str = DEFAULT_MODEL,
        stability: float = 0.5,
        similarity_boost: float = 0.5,
        style: float = 0.0,
        timeout: int = 30,
    ):
        self._api_key = api_key
        self.voice_id = resolve_voice_id(voice)
        self.model = model
        self.stability = stability
        self.similarity_boost = similarity_boost
        self.style = style
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    def _headers(self, **extra) -> Dict[str, str]:
        headers = {"xi-api-key": self._api_key or ""}
        headers.update(extra)
        return headers

    def _payload(self, text: str, overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        overrides = overrides or {}
        return {
            "text": text,
            "model_id": overrides.get("model_id", self.model),
            "voice_settings": {
                "stability": overrides.get("stability", self.stability),
                "similarity_boost": overrides.get("similarity_boost", self.similarity_boost),
                "style": overrides.get("style", self.style),
                "use_speaker_boost": overrides.get("use_speaker_boost", True),
            },
        }

    def synthesize(self, text: str, **overrides) -> bytes:
        """
        Render text to MP3 bytes.

        Raises:
            SynthesisError: On a missing key, empty text or an API failure
        """
        if not self.is_configured:
            raise SynthesisError("ElevenLabs API key not configured")
        if not text or not text.strip():
            raise SynthesisError("Text is required")

        url = f"{API_BASE_URL}/text-to-speech/{self.voice_id}"
        headers = self._headers(**{"Accept": "audio/mpeg", "Content-Type": "application/json"})

        try:
            response = requests.post(
                url, json=self._payload(text, overrides), headers=headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise SynthesisError(f"Text-to-speech conversion failed: {e}") from e

        if not response.ok:
            print(f"  [TTS] ❌ ElevenLabs error: {response.status_code}")
            raise SynthesisError(
                f"Text-to-speech conversion failed: {response.status_code} - {response.text[:200]}"
            )

        print(f"  [TTS] ✓ Synthesized {len(response.content)} bytes")
        return response.content

    def list_voices(self) -> List[Voice]:
        if not self.is_configured:
            raise SynthesisError("ElevenLabs API key not configured")
        try:
            response = requests.get(f"{API_BASE_URL}/voices", headers=self._headers(), timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise SynthesisError(f"Failed to get voices: {e}") from e

        return [
            Voice(
                id=item.get("voice_id", ""),
                name=item.get("name", ""),
                category=item.get("category", "premade"),
            )
            for item in response.json().get("voices", [])
        ]

    def test_connection(self) -> bool:
        if not self.is_configured:
            return False
        try:
            response = requests.get(f"{API_BASE_URL}/voices", headers=self._headers(), timeout=10)
        except requests.RequestException as e:
            print(f"  [TTS] ❌ ElevenLabs connection test failed: {e}")
            return False
        print("  [TTS] ✓ ElevenLabs connected" if response.ok else "  [TTS] ❌ ElevenLabs connection failed")
        return response.ok
