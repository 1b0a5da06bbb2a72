from __future__ import annotations

import json
from typing import Optional, Protocol

from src.charting.config import settings

STRUCTURING_PROMPT = """You are a medical transcription assistant. Parse the following medical consultation transcript into structured JSON and write a summary.

Extract:
1. past_medical_history: array of past conditions, surgeries and relevant history
2. current_symptoms: array of {"symptom": string, "characteristics": "mild | moderate | severe | unspecified"}
3. physical_exam_findings: object of examination findings; put vitals under "vital_signs"
4. diagnosis: string or array with the working diagnosis
5. treatment_plan: array of recommendations, procedures and follow-up
6. prescriptions: array of {"medication", "dosage", "frequency", "duration"}
7. summary: two or three paragraphs of continuous prose covering complaint, findings, diagnosis and plan

Vital signs: blood pressure as "120/80" in mmHg, heart rate in bpm, temperature in °F and weight in lbs,
converting units where needed and giving only the numeric value.

Return ONLY valid JSON with exactly these keys. Use [] or {} or "" for anything not mentioned.

Transcript:
"""


class ASRBackend(Protocol):
    """Protocol for automatic speech recognition backends.

    Implementations take a reference to a stored audio file and return a
    plain-text transcript.
    """

    def transcribe(self, audio_path: str, language_code: Optional[str] = None) -> str:  # pragma: no cover - interface
        raise NotImplementedError


class StructuringBackend(Protocol):
    """Protocol for backends turning a transcript into the structured payload.

    Returns the raw model output; it is parsed leniently by the caller since
    models do not always return clean JSON.
    """

    def structure(self, transcript: str) -> str:  # pragma: no cover - interface
        raise NotImplementedError


class DemoASRBackend:
    """Deterministic offline ASR backend used for tests and local runs."""

    def transcribe(self, audio_path: str, language_code: Optional[str] = None) -> str:
        return (
            "Patient reports a throbbing headache for two days with mild nausea. "
            "History of hypertension. Blood pressure is 150 over 95, heart rate 88, "
            "temperature 98.9, weight 182 pounds. Neck is supple, no focal deficits. "
            "Likely tension headache. Start ibuprofen 400 mg every 6 hours for 5 days "
            "and follow up in two weeks."
        )


class DemoStructuringBackend:
    """Offline structuring backend returning a fixed, realistic payload.

    The payload carries vitals both in ``vital_signs`` and as a
    JSON fragment inside a free-text finding, as real model output often does.
    """

    def structure(self, transcript: str) -> str:
        first_sentence = transcript.split(". ")[0].strip().rstrip(".")
        payload = {
            "past_medical_history": ["Hypertension"],
            "current_symptoms": [
                {"symptom": "headache", "characteristics": "moderate"},
                {"symptom": "nausea", "characteristics": "mild"},
            ],
            "physical_exam_findings": {
                "vital_signs": {"blood_pressure": "150/95", "heart_rate": "88"},
                "general": 'Alert, no distress. {"temperature": "98.9", "weight": "182"}',
                "neck": "Supple",
                "neurological": "No focal deficits",
            },
            "diagnosis": "Tension headache",
            "treatment_plan": ["Ibuprofen as needed", "Follow up in two weeks"],
            "prescriptions": [
                {"medication": "Ibuprofen", "dosage": "400 mg", "frequency": "every 6 hours", "duration": "5 days"}
            ],
            "summary": f"{first_sentence}. Findings and plan recorded from dictation.",
        }
        return json.dumps(payload)


class WhisperASRBackend:
    """ASR backend that uses the open-source Whisper model via the `whisper` library.

    This implementation expects `audio_path` to be a local filesystem path.
    To use it, install the whisper package (e.g. `pip install openai-whisper`)
    and set `ASR_BACKEND=whisper` in the environment.
    """

    def __init__(self, model_name: str | None = None) -> None:
        self._model_name = model_name or settings.whisper_model_name
        self._model = None

    def _load_model(self):
        if self._model is None:
            try:
                import whisper  # type: ignore
            except ImportError as exc:  # pragma: no cover - depends on external lib
                raise RuntimeError(
                    "WhisperASRBackend requires the 'whisper' library. "
                    "Install it with 'pip install openai-whisper'"
                ) from exc
            self._model = whisper.load_model(self._model_name)

    def transcribe(self, audio_path: str, language_code: Optional[str] = None) -> str:  # pragma: no cover - heavy model
        self._load_model()
        result = self._model.transcribe(audio_path, language=language_code)
        return result.get("text", "")


class LLMStructuringBackend:
    """Structuring backend that prompts an LLM via the OpenAI Python client.

    If the `OPENAI_API_KEY` environment variable is not set or the `openai`
    package is missing, it raises at runtime.
    """

    def __init__(self, model: str | None = None) -> None:
        self._model = model or settings.llm_model

    def structure(self, transcript: str) -> str:  # pragma: no cover - depends on external service
        api_key = settings.openai_api_key
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY must be set to use LLMStructuringBackend")

        try:
            from openai import OpenAI
        except ImportError as exc:
            raise RuntimeError(
                "LLMStructuringBackend requires the 'openai' package. "
                "Install it with 'pip install openai'"
            ) from exc

        client = OpenAI(api_key=api_key)
        response = client.responses.create(
            model=self._model,
            input=[{"role": "user", "content": STRUCTURING_PROMPT + transcript}],
        )
        for output in response.output:
            for item in getattr(output, "content", None) or []:
                if item.type == "output_text" and item.text:
                    return item.text
        return ""


demo_asr_backend = DemoASRBackend()
demo_structuring_backend = DemoStructuringBackend()


def get_asr_backend_from_env() -> ASRBackend:
    """Select an ASR backend based on the ASR_BACKEND environment variable.

    - ASR_BACKEND=whisper → WhisperASRBackend
    - Anything else (or unset) → DemoASRBackend
    """

    if settings.asr_backend.lower() == "whisper":
        return WhisperASRBackend()
    return demo_asr_backend


def get_structuring_backend_from_env() -> StructuringBackend:
    """Select a structuring backend based on STRUCTURING_BACKEND.

    - STRUCTURING_BACKEND=llm → LLMStructuringBackend
    - Anything else (or unset) → DemoStructuringBackend
    """

    if settings.structuring_backend.lower() == "llm":
        return LLMStructuringBackend()
    return demo_structuring_backend
