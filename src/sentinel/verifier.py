"""AI verification of proof uploads (photo or video) against a scheduled activity."""

import json
import mimetypes
import time
from pathlib import Path

from loguru import logger

from sentinel.schema import ScheduleBlock, VerificationLog, VerificationResult
from sentinel.settings import settings

NOT_CONFIGURED_TAG = "API Key Not Configured"
ANALYSIS_FAILED_TAG = "System Error: Analysis Failed"
UPLOAD_POLL_SECONDS = 1.0
UPLOAD_TIMEOUT_SECONDS = 120.0

SYSTEM_PROMPT = """
You are a strict but fair accountability assistant. You check photo or video
proof submitted by the user against the activity on their schedule.

Criteria:
- Phone usage during Deep Study = Immediate Fail (Score < 3).
- Sleeping during Study = Immediate Fail.
- Leaving desk frequently = Lower Score.
- Visible intense focus = High Score.
"""

PROMPT_TEMPLATE = """
The user is supposed to be performing: "{activity}".

Analyze the uploaded file (image or video) to verify they are doing this activity.

Only reject as invalid if the input shows a blank screen, memes or
entertainment screenshots, random objects with no connection to any
productive activity, or intentionally misleading content. Otherwise accept
any genuine attempt, even with poor lighting or a casual home setup.

Flag only obvious distractions: a phone in hand during focus time, sleeping
during an active task, entertainment being consumed.

Focus score (0-10): 9-10 excellent, 7-8 good, 5-6 acceptable, 3-4 minimal,
1-2 very poor, 0 only for invalid content.

Return ONLY valid JSON in this exact format:
{{
  "task_verified": boolean,
  "focus_score": number (0-10),
  "ai_critique": "Brief, constructive feedback",
  "distractions_detected": ["list", "of", "distractions"]
}}
"""


def not_configured_result() -> VerificationResult:
    return VerificationResult(
        task_verified=False,
        focus_score=0,
        distractions_detected=[NOT_CONFIGURED_TAG],
        ai_critique="AI verification is not available. Set GEMINI_API_KEY to enable it.",
    )


def failed_result() -> VerificationResult:
    return VerificationResult(
        task_verified=False,
        focus_score=0,
        distractions_detected=[ANALYSIS_FAILED_TAG],
        ai_critique="Technical error occurred during verification. Please try again.",
    )


def parse_verification_json(text: str) -> VerificationResult:
    """Parses the model's answer, tolerating ```json fences around it."""
    if not text or not text.strip():
        raise ValueError("Empty response from AI")

    cleaned = text.replace("```json", "").replace("```", "").strip()
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start != -1 and end > start:
        cleaned = cleaned[start : end + 1]
    return VerificationResult(**json.loads(cleaned))


def _is_api_key_valid(api_key: str | None) -> bool:
    return bool(api_key and api_key.strip() and api_key != "PLACEHOLDER_API_KEY")


class ProofVerifier:
    """Gemini-backed verifier. Fails open with a tagged result instead of raising."""

    def __init__(self, api_key: str | None = None, model: str | None = None):
        self.api_key = settings.gemini_api_key if api_key is None else api_key
        self.model_name = model or settings.gemini_model
        self._model = None

    @property
    def configured(self) -> bool:
        return _is_api_key_valid(self.api_key)

    def _get_model(self):
        if self._model is None:
            import google.generativeai as genai

            genai.configure(api_key=self.api_key)
            self._model = genai.GenerativeModel(
                self.model_name,
                system_instruction=SYSTEM_PROMPT,
                generation_config={"response_mime_type": "application/json"},
            )
        return self._model

    def _upload(self, file_path: Path):
        import google.generativeai as genai

        mime_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"
        logger.debug(f"Uploading {file_path.name} ({mime_type}) to Gemini")
        uploaded = genai.upload_file(path=str(file_path), mime_type=mime_type)

        deadline = time.monotonic() + UPLOAD_TIMEOUT_SECONDS
        while uploaded.state.name == "PROCESSING":
            if time.monotonic() > deadline:
                raise TimeoutError(f"Gemini is still processing {file_path.name}")
            time.sleep(UPLOAD_POLL_SECONDS)
            uploaded = genai.get_file(uploaded.name)

        if uploaded.state.name == "FAILED":
            raise RuntimeError(f"Gemini could not process {file_path.name}")
        return uploaded

    def analyze(self, file_path: Path | str, activity: str) -> VerificationResult:
        """Checks one proof file against the scheduled activity."""
        if not self.configured:
            logger.warning("AI verification not available - API key not configured")
            return not_configured_result()

        file_path = Path(file_path)
        try:
            import google.generativeai as genai

            uploaded = self._upload(file_path)
            try:
                response = self._get_model().generate_content(
                    [uploaded, PROMPT_TEMPLATE.format(activity=activity)]
                )
            finally:
                genai.delete_file(uploaded.name)

            result = parse_verification_json(response.text)
            logger.info(
                f"Verification for {activity!r}: verified={result.task_verified} "
                f"score={result.focus_score}"
            )
            return result
        except Exception as e:
            logger.error(f"AI analysis failed: {e}")
            return failed_result()


def verify_block(
    verifier: ProofVerifier,
    block: ScheduleBlock,
    file_path: Path | str,
    user_id: str,
) -> VerificationLog:
    """Runs verification for one block and builds the log to store."""
    file_path = Path(file_path)
    result = verifier.analyze(file_path, block.activity)
    return VerificationLog(
        user_id=user_id,
        block_id=block.id,
        activity_name=block.activity,
        file_name=file_path.name,
        file_type=mimetypes.guess_type(file_path.name)[0] or "",
        **result.model_dump(),
    )
