"""
AI Agents for Little Treasury

Two Gemini-backed agents:

1. FINANCIAL ADVISOR AGENT:
   - Reads a snapshot of the ledger (totals + recent transactions)
   - Returns Markdown advice
   - CANNOT change the ledger

2. INVESTMENT CHAT AGENT:
   - Reads the current holdings of one investment account, a message and
     optionally a screenshot
   - Returns commentary plus a full replacement holdings list
   - CANNOT apply the holdings itself; the caller decides

CRITICAL BOUNDARIES:
- Neither agent ever raises to its caller. Missing configuration, network
  failures and unparseable output all come back as user-visible text.
- No retries. A failed call leaves the ledger exactly as it was.
- Holdings are only returned when the whole response parsed and validated.
"""

import base64
import binascii
import json
import re
from decimal import Decimal
from io import BytesIO
from typing import Any, Optional, Sequence, Union
from uuid import UUID

import google.generativeai as genai
import structlog
from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from treasury.audit.logger import AuditLogger
from treasury.config import AppSettings, GeminiSettings, get_settings
from treasury.ledger.aggregation import (
    investment_assets,
    pending_income,
    total_assets,
    total_liabilities,
)
from treasury.models.finance import Holding, Language, LedgerState


logger = structlog.get_logger(__name__)


NOT_CONFIGURED_MESSAGE = "AI service is not configured. Set GEMINI_API_KEY to enable it."
NO_ADVICE_MESSAGE = "No advice generated."
ADVICE_ERROR_MESSAGE = "Service unavailable."
CHAT_ERROR_MESSAGE = "Error processing investment data. Please try again."
IMAGE_TOO_LARGE_MESSAGE = "The screenshot is too large. Please upload a smaller image."

_holdings_adapter = TypeAdapter(list[Holding])

_FENCE_START = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_END = re.compile(r"\s*```$")


class AdviceResponse(BaseModel):
    """Advice text and whether the model actually produced it."""

    text: str
    generated: bool = False


class ChatResponse(BaseModel):
    """
    Result of one investment chat turn.

    holdings is the complete new list for the account, or None when the
    reply could not be used to update it.
    """

    text: str
    holdings: Optional[list[Holding]] = Field(default=None)

    @property
    def has_holdings(self) -> bool:
        return self.holdings is not None


class ImageError(ValueError):
    """Uploaded screenshot could not be read."""
    pass


class ImageTooLargeError(ImageError):
    """Uploaded screenshot exceeds the configured size limit."""
    pass


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` wrapper, if any."""
    text = text.strip()
    text = _FENCE_START.sub("", text)
    text = _FENCE_END.sub("", text)
    return text.strip()


def parse_chat_payload(text: str) -> tuple[str, Optional[list[Holding]]]:
    """
    Parse the chat model's JSON reply into (response text, holdings).

    A missing or null "holdings" means "keep the portfolio as is".

    Raises:
        ValueError: If the reply is not a JSON object with a "response"
            string, or the holdings don't validate
    """
    data = json.loads(strip_code_fences(text), parse_float=Decimal)
    if not isinstance(data, dict):
        raise ValueError("Chat reply is not a JSON object")

    reply = data.get("response")
    if not isinstance(reply, str):
        raise ValueError("Chat reply has no response text")

    raw_holdings = data.get("holdings")
    if raw_holdings is None:
        return reply, None

    try:
        holdings = _holdings_adapter.validate_python(raw_holdings)
    except ValidationError as e:
        raise ValueError(f"Invalid holdings in chat reply: {e}") from e
    return reply, holdings


def prepare_image(image: Union[bytes, str], max_bytes: int) -> bytes:
    """
    Turn an uploaded screenshot into JPEG bytes.

    Accepts raw bytes or a base64 string, with or without a data-URL header
    ("data:image/png;base64,...").
    """
    if isinstance(image, str):
        if "," in image:
            image = image.split(",", 1)[1]
        try:
            image = base64.b64decode(image, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ImageError(f"Invalid base64 image: {e}") from e

    if len(image) > max_bytes:
        raise ImageTooLargeError(f"Image is {len(image)} bytes, limit is {max_bytes}")

    try:
        with Image.open(BytesIO(image)) as img:
            output = BytesIO()
            img.convert("RGB").save(output, format="JPEG", quality=90)
    except (UnidentifiedImageError, OSError) as e:
        raise ImageError(f"Unreadable image: {e}") from e

    return output.getvalue()


def build_advice_prompt(
    state: LedgerState,
    language: Language,
    recent_limit: int = 50,
) -> str:
    """Advisor prompt with the snapshot totals and recent transactions."""
    base = state.base_currency

    recent = [
        {
            "date": t.date.date().isoformat(),
            "type": t.type.value,
            "category": t.category.label,
            "amount": f"{t.amount} {t.currency.value}",
            "tags": t.tags,
            "status": t.status.value,
        }
        for t in state.transactions[:recent_limit]
    ]

    return f"""You are a professional financial advisor called "Little Treasury Advisor".
Base Currency: {base.value}. Language: {language.display_name}.

Financial Snapshot:
- Total Liquid Assets: {total_assets(state.accounts, base):.2f}
- Investment Assets: {investment_assets(state.accounts, base):.2f}
- Pending Income: {pending_income(state.transactions, base):.2f}
- Liabilities: {total_liabilities(state.accounts, base):.2f}

Recent {recent_limit} Transactions JSON:
{json.dumps(recent, ensure_ascii=False)}

Provide advice:
1. Investment: Comment on global trends relevant to the portfolio size.
2. Spending: Analyze habits.
3. Pending Income: How to manage cash flow.
4. Debt: Repayment strategies.

Format in Markdown. Concise."""


def build_chat_prompt(
    holdings: Sequence[Holding],
    message: str,
    language: Language,
) -> str:
    """Portfolio assistant prompt asking for a JSON reply."""
    current = json.dumps([h.to_record() for h in holdings], ensure_ascii=False)

    return f"""You are an intelligent portfolio manager assistant.
Reply in {language.display_name}.

Current Portfolio (JSON):
{current}

User Input: {json.dumps(message, ensure_ascii=False)}

Task:
1. Analyze the user's input (and image if provided). The user might upload a screenshot of a financial app or type "I bought 10 shares of Apple for $150".
2. Update the 'Current Portfolio' list based on this info.
   - If it's a screenshot showing current values, update the 'amount' and 'dailyChange'.
   - If it's a new buy, add it.
   - If selling, remove or decrease.
   - If no specific numbers are given (e.g., just "How is the market?"), keep the portfolio as is.
3. Provide a brief financial commentary based on the products and current global financial news.

Output Format:
Return a JSON object with this EXACT structure:
{{"response": "Your friendly advice/commentary here...", "holdings": [{{"name": "...", "code": "...", "amount": 0, "dailyChange": 0, "quantity": 0}}]}}"""


class _GeminiAgent:
    """Shared setup for the Gemini-backed agents."""

    service_name = "gemini"

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model: Optional[Any] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._settings = settings or get_settings().gemini
        self._audit = audit_logger or AuditLogger()
        self._model = model
        if self._model is None and self._settings.is_configured:
            self._configure_genai()

    def _generation_config(self) -> dict:
        return {
            "temperature": self._settings.temperature,
            "max_output_tokens": self._settings.max_tokens,
        }

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config=self._generation_config(),
        )

    @property
    def is_available(self) -> bool:
        return self._model is not None

    def _report_not_configured(self, correlation_id: Optional[UUID]) -> None:
        logger.warning("gemini_not_configured")
        self._audit.log_configuration_error(
            self.service_name,
            "GEMINI_API_KEY is not set",
            correlation_id=correlation_id,
        )

    def _report_failure(self, error: Exception, correlation_id: Optional[UUID]) -> None:
        logger.error(
            "gemini_call_failed",
            agent=type(self).__name__,
            error=str(error),
        )
        self._audit.log_external_service_error(
            self.service_name,
            str(error),
            correlation_id=correlation_id,
        )


class FinancialAdvisorAgent(_GeminiAgent):
    """
    Generates general financial advice from a ledger snapshot.

    RESPONSIBILITIES:
    - Summarize the ledger into a prompt (totals + recent transactions)
    - Return the model's Markdown as-is

    BOUNDARIES:
    - NEVER modifies the ledger
    - NEVER raises; failures become ADVICE_ERROR_MESSAGE
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model: Optional[Any] = None,
        audit_logger: Optional[AuditLogger] = None,
        app_settings: Optional[AppSettings] = None,
    ):
        super().__init__(settings, model, audit_logger)
        app_settings = app_settings or get_settings().app
        self._recent_limit = app_settings.advice_recent_transactions

    async def generate_advice(
        self,
        state: LedgerState,
        language: Union[Language, str] = Language.EN,
        correlation_id: Optional[UUID] = None,
    ) -> AdviceResponse:
        if not self.is_available:
            self._report_not_configured(correlation_id)
            return AdviceResponse(text=NOT_CONFIGURED_MESSAGE, generated=False)

        prompt = build_advice_prompt(state, Language(language), self._recent_limit)

        try:
            response = await self._model.generate_content_async(prompt)
            text = (response.text or "").strip()
        except Exception as e:
            self._report_failure(e, correlation_id)
            return AdviceResponse(text=ADVICE_ERROR_MESSAGE, generated=False)

        if not text:
            return AdviceResponse(text=NO_ADVICE_MESSAGE, generated=False)

        return AdviceResponse(text=text, generated=True)


class InvestmentChatAgent(_GeminiAgent):
    """
    Updates an investment account's holdings from chat.

    RESPONSIBILITIES:
    - Send holdings, the message and an optional screenshot to Gemini
    - Parse the JSON reply into commentary and a new holdings list

    BOUNDARIES:
    - NEVER applies holdings; the caller does, and only when present
    - NEVER raises; failures become CHAT_ERROR_MESSAGE with no holdings
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model: Optional[Any] = None,
        audit_logger: Optional[AuditLogger] = None,
        app_settings: Optional[AppSettings] = None,
    ):
        super().__init__(settings, model, audit_logger)
        app_settings = app_settings or get_settings().app
        self._max_image_bytes = app_settings.max_image_size_bytes

    def _generation_config(self) -> dict:
        config = super()._generation_config()
        config["response_mime_type"] = "application/json"
        return config

    async def process_chat(
        self,
        holdings: Sequence[Holding],
        message: str,
        image: Optional[Union[bytes, str]] = None,
        language: Union[Language, str] = Language.EN,
        correlation_id: Optional[UUID] = None,
    ) -> ChatResponse:
        if not self.is_available:
            self._report_not_configured(correlation_id)
            return ChatResponse(text=NOT_CONFIGURED_MESSAGE)

        contents: list[Any] = [build_chat_prompt(holdings, message, Language(language))]

        if image:
            try:
                jpeg = prepare_image(image, self._max_image_bytes)
            except ImageTooLargeError as e:
                logger.warning("chat_image_rejected", error=str(e))
                return ChatResponse(text=IMAGE_TOO_LARGE_MESSAGE)
            except ImageError as e:
                logger.warning("chat_image_rejected", error=str(e))
                return ChatResponse(text=CHAT_ERROR_MESSAGE)
            contents.append({"mime_type": "image/jpeg", "data": jpeg})

        try:
            response = await self._model.generate_content_async(contents)
            reply, new_holdings = parse_chat_payload(response.text)
        except Exception as e:
            self._report_failure(e, correlation_id)
            return ChatResponse(text=CHAT_ERROR_MESSAGE)

        return ChatResponse(text=reply, holdings=new_holdings)
