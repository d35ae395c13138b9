"""
Tests for the Gemini agents

The Gemini model is replaced by a fake with the same
generate_content_async() call, so no network access is needed.
"""

import base64
from decimal import Decimal
from io import BytesIO

import pytest
from PIL import Image

from treasury.agents import (
    ADVICE_ERROR_MESSAGE,
    CHAT_ERROR_MESSAGE,
    IMAGE_TOO_LARGE_MESSAGE,
    NO_ADVICE_MESSAGE,
    NOT_CONFIGURED_MESSAGE,
    FinancialAdvisorAgent,
    ImageError,
    ImageTooLargeError,
    InvestmentChatAgent,
    build_advice_prompt,
    build_chat_prompt,
    parse_chat_payload,
    prepare_image,
    strip_code_fences,
)
from treasury.audit import AuditLogger
from treasury.config import AppSettings, GeminiSettings
from treasury.models import AuditEventType, Holding, Language


class FakeResponse:
    def __init__(self, text):
        self.text = text


class FakeModel:
    """Stands in for genai.GenerativeModel."""

    def __init__(self, text="", error=None):
        self.text = text
        self.error = error
        self.calls = []

    async def generate_content_async(self, contents):
        self.calls.append(contents)
        if self.error:
            raise self.error
        return FakeResponse(self.text)


def _png_bytes(size=(4, 4)):
    output = BytesIO()
    Image.new("RGBA", size, (255, 0, 0, 128)).save(output, format="PNG")
    return output.getvalue()


def _advisor(model=None, audit_logger=None):
    return FinancialAdvisorAgent(
        settings=GeminiSettings(api_key=None),
        model=model,
        audit_logger=audit_logger,
        app_settings=AppSettings(),
    )


def _chat(model=None, audit_logger=None, max_image_size_mb=10):
    return InvestmentChatAgent(
        settings=GeminiSettings(api_key=None),
        model=model,
        audit_logger=audit_logger,
        app_settings=AppSettings(max_image_size_mb=max_image_size_mb),
    )


HOLDINGS = [Holding(name="China CSI 300", code="000300", amount=Decimal("5000"))]


class TestReplyParsing:
    """Tests for chat reply parsing."""

    def test_strip_code_fences(self):
        """Test that markdown fences are removed."""
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fences('  {"a": 1} ') == '{"a": 1}'

    def test_parse_with_holdings(self):
        """Test a complete reply."""
        reply, holdings = parse_chat_payload(
            '```json\n{"response": "Nice buy", "holdings": '
            '[{"name": "Apple", "code": "AAPL", "amount": 1500.5, "dailyChange": -2.25, "quantity": 10}]}\n```'
        )
        assert reply == "Nice buy"
        assert holdings[0].name == "Apple"
        assert holdings[0].amount == Decimal("1500.5")
        assert holdings[0].daily_change == Decimal("-2.25")

    def test_null_holdings_keeps_portfolio(self):
        """Test that null holdings means no update."""
        assert parse_chat_payload('{"response": "Markets are calm", "holdings": null}') == ("Markets are calm", None)
        assert parse_chat_payload('{"response": "Hi"}') == ("Hi", None)

    def test_numeric_fund_code(self):
        """Test that codes sent as JSON numbers are kept as text."""
        reply, holdings = parse_chat_payload(
            '{"response": "ok", "holdings": [{"name": "CSI 300 ETF", "code": 510300, "amount": 5000}]}'
        )
        assert reply == "ok"
        assert holdings[0].code == "510300"
        assert holdings[0].amount == Decimal("5000")

    def test_empty_holdings_is_an_update(self):
        """Test that an empty list clears the portfolio."""
        assert parse_chat_payload('{"response": "Sold all", "holdings": []}') == ("Sold all", [])

    @pytest.mark.parametrize("text", [
        "not json",
        "[1, 2]",
        '{"holdings": []}',
        '{"response": "ok", "holdings": [{"amount": 5}]}',
        '{"response": "ok", "holdings": "lots"}',
    ])
    def test_invalid_replies(self, text):
        """Test that unusable replies raise ValueError."""
        with pytest.raises(ValueError):
            parse_chat_payload(text)


class TestPrepareImage:
    """Tests for screenshot handling."""

    def test_png_bytes_become_jpeg(self):
        """Test re-encoding raw bytes."""
        jpeg = prepare_image(_png_bytes(), max_bytes=1024 * 1024)
        assert jpeg[:2] == b"\xff\xd8"

    def test_data_url(self):
        """Test a base64 data URL."""
        data_url = "data:image/png;base64," + base64.b64encode(_png_bytes()).decode()
        with Image.open(BytesIO(prepare_image(data_url, max_bytes=1024 * 1024))) as img:
            assert img.format == "JPEG"
            assert img.size == (4, 4)

    def test_too_large(self):
        """Test the size limit."""
        with pytest.raises(ImageTooLargeError):
            prepare_image(_png_bytes(), max_bytes=10)

    @pytest.mark.parametrize("image", [b"definitely not an image", "%%%not base64%%%"])
    def test_unreadable(self, image):
        """Test that garbage raises ImageError."""
        with pytest.raises(ImageError):
            prepare_image(image, max_bytes=1024 * 1024)


class TestPrompts:
    """Tests for prompt construction."""

    def test_advice_prompt(self, state):
        """Test that the snapshot and language are in the prompt."""
        prompt = build_advice_prompt(state, Language.ZH)
        assert "Base Currency: CNY" in prompt
        assert "Language: Chinese" in prompt
        assert "Liabilities: 1200.00" in prompt

    def test_chat_prompt(self):
        """Test that holdings and the message are in the prompt."""
        prompt = build_chat_prompt(HOLDINGS, "I bought 10 AAPL", Language.EN)
        assert '"code": "000300"' in prompt
        assert '"I bought 10 AAPL"' in prompt
        assert "Reply in English" in prompt


class TestFinancialAdvisorAgent:
    """Tests for the advisor agent."""

    async def test_not_configured(self, state):
        """Test the message and audit event without an API key."""
        audit_logger = AuditLogger()
        result = await _advisor(audit_logger=audit_logger).generate_advice(state)

        assert result.text == NOT_CONFIGURED_MESSAGE
        assert not result.generated
        assert audit_logger.recent_events[0].event_type == AuditEventType.CONFIGURATION_ERROR

    async def test_advice(self, state):
        """Test that model text is returned as generated advice."""
        model = FakeModel("## Spending\nCut back on takeout.")
        result = await _advisor(model).generate_advice(state, language="zh")

        assert result.generated
        assert result.text.startswith("## Spending")
        assert "Language: Chinese" in model.calls[0]

    async def test_empty_advice(self, state):
        """Test that blank output is not treated as advice."""
        result = await _advisor(FakeModel("   ")).generate_advice(state)
        assert result.text == NO_ADVICE_MESSAGE
        assert not result.generated

    async def test_service_error(self, state):
        """Test that failures become a message, not an exception."""
        audit_logger = AuditLogger()
        agent = _advisor(FakeModel(error=RuntimeError("503")), audit_logger)

        result = await agent.generate_advice(state)

        assert result.text == ADVICE_ERROR_MESSAGE
        assert not result.generated
        event = audit_logger.recent_events[0]
        assert event.event_type == AuditEventType.EXTERNAL_SERVICE_ERROR
        assert event.error_message == "503"


class TestInvestmentChatAgent:
    """Tests for the investment chat agent."""

    async def test_not_configured(self):
        """Test the message without an API key."""
        result = await _chat().process_chat(HOLDINGS, "How is the market?")
        assert result.text == NOT_CONFIGURED_MESSAGE
        assert not result.has_holdings

    async def test_holdings_update(self):
        """Test a reply with a new holdings list."""
        model = FakeModel('{"response": "Added Gold", "holdings": [{"name": "Gold ETF", "amount": 300}]}')
        result = await _chat(model).process_chat(HOLDINGS, "I bought gold")

        assert result.text == "Added Gold"
        assert [h.name for h in result.holdings] == ["Gold ETF"]
        assert len(model.calls[0]) == 1

    async def test_image_is_attached(self):
        """Test that screenshots are sent as JPEG parts."""
        model = FakeModel('{"response": "Read it", "holdings": null}')
        result = await _chat(model).process_chat(HOLDINGS, "", image=_png_bytes())

        assert result.text == "Read it"
        assert not result.has_holdings
        prompt, image_part = model.calls[0]
        assert image_part["mime_type"] == "image/jpeg"
        assert image_part["data"][:2] == b"\xff\xd8"

    async def test_image_too_large(self):
        """Test that oversized screenshots are rejected before the call."""
        model = FakeModel('{"response": "unused"}')
        big = b"\x00" * (1024 * 1024 + 1)

        result = await _chat(model, max_image_size_mb=1).process_chat(HOLDINGS, "", image=big)

        assert result.text == IMAGE_TOO_LARGE_MESSAGE
        assert model.calls == []

    async def test_unreadable_image(self):
        """Test that a broken screenshot gives the chat error."""
        model = FakeModel('{"response": "unused"}')
        result = await _chat(model).process_chat(HOLDINGS, "", image=b"garbage")
        assert result.text == CHAT_ERROR_MESSAGE
        assert model.calls == []

    async def test_unparseable_reply(self):
        """Test that bad JSON gives the chat error and no holdings."""
        audit_logger = AuditLogger()
        result = await _chat(FakeModel("Sure! Here you go."), audit_logger).process_chat(HOLDINGS, "hi")

        assert result.text == CHAT_ERROR_MESSAGE
        assert result.holdings is None
        assert audit_logger.recent_events[0].event_type == AuditEventType.EXTERNAL_SERVICE_ERROR

    async def test_service_error(self):
        """Test that failures become a message, not an exception."""
        result = await _chat(FakeModel(error=TimeoutError())).process_chat(HOLDINGS, "hi")
        assert result.text == CHAT_ERROR_MESSAGE
        assert not result.has_holdings
