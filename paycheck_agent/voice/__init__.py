"""
Voice processing: Deepgram (or local Whisper) in, ElevenLabs out.
"""

from .speech_to_text import SpeechToText, TranscriptionError, TranscriptionResult, guess_mimetype
from .text_to_speech import TextToSpeech, SynthesisError, Voice, ELEVENLABS_VOICES

__all__ = [
    "SpeechToText",
    "TranscriptionError",
    "TranscriptionResult",
    "guess_mimetype",
    "TextToSpeech",
    "SynthesisError",
    "Voice",
    "ELEVENLABS_VOICES",
]
