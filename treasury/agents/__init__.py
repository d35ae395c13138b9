"""AI agents package."""

from treasury.agents.advisor import (
    ADVICE_ERROR_MESSAGE,
    CHAT_ERROR_MESSAGE,
    IMAGE_TOO_LARGE_MESSAGE,
    NO_ADVICE_MESSAGE,
    NOT_CONFIGURED_MESSAGE,
    AdviceResponse,
    ChatResponse,
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

__all__ = [
    "ADVICE_ERROR_MESSAGE",
    "CHAT_ERROR_MESSAGE",
    "IMAGE_TOO_LARGE_MESSAGE",
    "NO_ADVICE_MESSAGE",
    "NOT_CONFIGURED_MESSAGE",
    "AdviceResponse",
    "ChatResponse",
    "FinancialAdvisorAgent",
    "ImageError",
    "ImageTooLargeError",
    "InvestmentChatAgent",
    "build_advice_prompt",
    "build_chat_prompt",
    "parse_chat_payload",
    "prepare_image",
    "strip_code_fences",
]
