"""Voice input and output for Cardy Mind: speech-to-text and text-to-speech."""

import asyncio

from openai import APIConnectionError, APIStatusError, OpenAI

from cardy.core.config import get_settings
from cardy.core.errors import UpstreamServiceError
from cardy.core.logging import get_logger

logger = get_logger(__name__)

SPEECH_VOICES = ("alloy", "echo", "fable", "onyx", "nova", "shimmer")
SPEECH_FORMAT = "mp3"


def _get_client() -> OpenAI:
    """Get OpenAI client instance with the configured per-request timeout."""
    settings = get_settings()
    return OpenAI(
        api_key=settings.OPENAI_API_KEY,
        timeout=settings.OPENAI_TIMEOUT_SECONDS,
    )


def transcribe_audio(audio: bytes, filename: str) -> str:
    """
    Convert recorded speech to text.

    Args:
        audio: Encoded audio (webm, mp3, wav, m4a, ...)
        filename: Name whose extension tells the provider the audio format

    Returns:
        Transcribed text, stripped

    Raises:
        ValueError: If no audio was supplied
        UpstreamServiceError: If the provider rejects the request or is unreachable
    """
    if not audio:
        raise ValueError("Audio data is required")

    settings = get_settings()
    client = _get_client()

    try:
        result = client.audio.transcriptions.create(
            model=settings.TRANSCRIPTION_MODEL,
            file=(filename, audio),
        )
    except APIStatusError as e:
        logger.error(
            f"Transcription rejected by provider: {e.message}",
            extra={"model": settings.TRANSCRIPTION_MODEL, "status_code": e.status_code},
        )
        raise UpstreamServiceError("openai", e.message, e.status_code) from e
    except APIConnectionError as e:
        logger.error(f"Transcription connection failure: {e}")
        raise UpstreamServiceError("openai", str(e)) from e

    text = (result.text or "").strip()
    logger.info(
        f"Transcribed {len(audio)} bytes of audio",
        extra={"audio_filename": filename, "chars": len(text)},
    )
    return text


def synthesize_speech(text: str, voice: str | None = None) -> bytes:
    """
    Read text aloud.

    Args:
        text: Text to speak
        voice: One of SPEECH_VOICES; defaults to SPEECH_VOICE

    Returns:
        MP3 audio bytes

    Raises:
        ValueError: If the text is blank or the voice unknown
        UpstreamServiceError: If the provider rejects the request or is unreachable
    """
    if not text.strip():
        raise ValueError("Text content is required")

    settings = get_settings()
    voice = voice or settings.SPEECH_VOICE
    if voice not in SPEECH_VOICES:
        raise ValueError(f"Unknown voice: {voice}")

    client = _get_client()

    try:
        response = client.audio.speech.create(
            model=settings.SPEECH_MODEL,
            voice=voice,
            input=text,
            response_format=SPEECH_FORMAT,
        )
    except APIStatusError as e:
        logger.error(
            f"Speech synthesis rejected by provider: {e.message}",
            extra={"model": settings.SPEECH_MODEL, "status_code": e.status_code},
        )
        raise UpstreamServiceError("openai", e.message, e.status_code) from e
    except APIConnectionError as e:
        logger.error(f"Speech synthesis connection failure: {e}")
        raise UpstreamServiceError("openai", str(e)) from e

    audio = response.content
    logger.info(
        f"Synthesized {len(text)} chars with voice {voice}",
        extra={"voice": voice, "audio_bytes": len(audio)},
    )
    return audio


async def transcribe_audio_async(audio: bytes, filename: str) -> str:
    return await asyncio.to_thread(transcribe_audio, audio, filename)


async def synthesize_speech_async(text: str, voice: str | None = None) -> bytes:
    return await asyncio.to_thread(synthesize_speech, text, voice)
