import pytest

from src.charting.config import settings
from src.charting.services.transcription.backends import (
    DemoASRBackend,
    DemoStructuringBackend,
    LLMStructuringBackend,
    WhisperASRBackend,
    get_asr_backend_from_env,
    get_structuring_backend_from_env,
)
from src.charting.services.transcription.service import TranscriptionService


class FixedASR:
    def __init__(self, text):
        self.text = text

    def transcribe(self, audio_path, language_code=None):
        return self.text


class FixedStructuring:
    def __init__(self, raw):
        self.raw = raw

    def structure(self, transcript):
        return self.raw


def test_demo_backends_produce_structured_result():
    service = TranscriptionService(asr_backend=DemoASRBackend(), structuring_backend=DemoStructuringBackend())

    result = service.transcribe_visit_audio("recordings/visit.mp3")

    assert result.transcript.startswith("Patient reports")
    assert result.summary
    assert result.structured.diagnosis == "Tension headache"
    assert result.structured.summary is None


def test_model_output_wrapped_in_prose():
    service = TranscriptionService(
        asr_backend=FixedASR("Patient has the flu."),
        structuring_backend=FixedStructuring('Sure!\n{"diagnosis": ["Flu"], "summary": "Short."}'),
    )

    result = service.transcribe_visit_audio("a.wav")

    assert result.summary == "Short."
    assert result.structured.diagnosis == ["Flu"]


def test_unparseable_model_output_is_kept_raw():
    service = TranscriptionService(
        asr_backend=FixedASR("Patient has the flu."),
        structuring_backend=FixedStructuring("I could not parse this."),
    )

    result = service.transcribe_visit_audio("a.wav")

    assert result.summary is None
    assert result.structured.model_extra == {"raw": "I could not parse this."}


def test_empty_transcript_is_an_error():
    service = TranscriptionService(asr_backend=FixedASR("   "), structuring_backend=FixedStructuring("{}"))
    with pytest.raises(ValueError):
        service.transcribe_visit_audio("a.wav")


def test_backend_selection(monkeypatch):
    monkeypatch.setattr(settings, "asr_backend", "demo")
    monkeypatch.setattr(settings, "structuring_backend", "demo")
    assert isinstance(get_asr_backend_from_env(), DemoASRBackend)
    assert isinstance(get_structuring_backend_from_env(), DemoStructuringBackend)

    monkeypatch.setattr(settings, "asr_backend", "whisper")
    monkeypatch.setattr(settings, "structuring_backend", "LLM")
    assert isinstance(get_asr_backend_from_env(), WhisperASRBackend)
    assert isinstance(get_structuring_backend_from_env(), LLMStructuringBackend)


def test_llm_backend_requires_api_key(monkeypatch):
    monkeypatch.setattr(settings, "openai_api_key", None)
    with pytest.raises(RuntimeError):
        LLMStructuringBackend().structure("transcript")
