"""API endpoints for Cardy Mind chat."""

from fastapi import APIRouter, File, HTTPException, Response, UploadFile

from cardy.core.chat import ChatAnswer, answer, answer_data_model_question
from cardy.core.config import get_settings
from cardy.core.errors import NotFoundError, ScopeValidationError, UpstreamServiceError
from cardy.core.logging import get_logger
from cardy.core.schemas_chat import (
    ChatRequest,
    ChatResponse,
    ChatSource,
    DataModelChatRequest,
    SpeakRequest,
    TranscriptionResponse,
)
from cardy.core.scope import resolve_context
from cardy.core.speech import synthesize_speech_async, transcribe_audio_async

logger = get_logger(__name__)

router = APIRouter()


def _to_response(result: ChatAnswer) -> ChatResponse:
    return ChatResponse(
        reply=result.reply,
        sources=[
            ChatSource(
                document_id=s.document_id,
                document_name=s.document_name,
                document_type=s.document_type,
            )
            for s in result.sources
        ],
        is_fallback=result.is_fallback,
        usage=result.usage,
    )


@router.post("/chat")
async def chat(request: ChatRequest) -> ChatResponse:
    """Answer the latest user message from the documents in scope."""
    try:
        context = resolve_context(request.context, request.session_id)
        result = await answer(request.messages, context)
    except ScopeValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UpstreamServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception:
        logger.exception("Chat failed")
        raise HTTPException(status_code=500, detail="Chat failed")

    return _to_response(result)


@router.post("/chat/data-model")
async def chat_data_model(request: DataModelChatRequest) -> ChatResponse:
    """Answer a question about one data-model document."""
    try:
        context = None
        if request.context is not None or request.session_id:
            context = resolve_context(request.context, request.session_id)
        result = await answer_data_model_question(request.document_id, request.message, context)
    except ScopeValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UpstreamServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception:
        logger.exception("Data model chat failed")
        raise HTTPException(status_code=500, detail="Data model chat failed")

    return _to_response(result)


@router.post("/chat/transcribe")
async def transcribe(file: UploadFile = File(...)) -> TranscriptionResponse:
    """Turn a recorded voice message into text for the chat box."""
    audio = await file.read()
    if not audio:
        raise HTTPException(status_code=400, detail="Audio file is empty")
    if len(audio) > get_settings().MAX_AUDIO_BYTES:
        raise HTTPException(status_code=400, detail="Audio file is too large")

    try:
        text = await transcribe_audio_async(audio, file.filename or "audio.webm")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UpstreamServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception:
        logger.exception("Transcription failed")
        raise HTTPException(status_code=500, detail="Transcription failed")

    return TranscriptionResponse(text=text)


@router.post("/chat/speak")
async def speak(request: SpeakRequest) -> Response:
    """Read a reply aloud; returns MP3 audio."""
    try:
        audio = await synthesize_speech_async(request.text, request.voice)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UpstreamServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception:
        logger.exception("Speech synthesis failed")
        raise HTTPException(status_code=500, detail="Speech synthesis failed")

    return Response(content=audio, media_type="audio/mpeg")
