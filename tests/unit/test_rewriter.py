from __future__ import annotations

from langchain_core.language_models.fake_chat_models import FakeListChatModel
import pytest

from umbil.core.config import Settings
from umbil.ingestion.rewriter import INGESTION_PROMPT
from umbil.ingestion.rewriter import build_rewriter

pytestmark = pytest.mark.unit


def test_prompt_places_input_text_last():
    assert INGESTION_PROMPT.rstrip().endswith("{text}")
    assert "No New Advice" in INGESTION_PROMPT


def test_build_rewriter_returns_model_output():
    llm = FakeListChatModel(responses=["# Assessment\n\n- Check temperature"])
    rewrite = build_rewriter(Settings(), llm=llm)

    assert rewrite("Original guideline text.") == "# Assessment\n\n- Check temperature"
