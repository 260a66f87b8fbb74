"""LLM rewrite step run on guideline text before it is chunked.

The model restates the clinical facts of the source in original wording
so the stored chunks are not verbatim copies of third-party guidance.
"""

from __future__ import annotations

from collections.abc import Callable

from langchain_core.language_models import BaseChatModel
from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate
from langchain_core.runnables import Runnable
from langchain_openai import ChatOpenAI

from umbil.core.config import Settings

__all__ = ["INGESTION_PROMPT", "Rewriter", "build_rewriter", "get_rewrite_chain"]

Rewriter = Callable[[str], str]

INGESTION_PROMPT = """You are an expert Medical Editor for Umbil.
Your task is to read the provided clinical guideline text and RE-WRITE it into a completely original entry for our database.

RULES:
1.  **Extract Facts Only:** Identify the clinical facts (doses, criteria, red flags, symptoms).
2.  **Destroy Original Wording:** Do NOT summarize or paraphrase sentence-by-sentence. Do not use the original structure.
3.  **New Voice:** Write in a crisp, bullet-pointed "Umbil Voice" for a junior doctor. Use standard headings (Assessment, Management, Red Flags).
4.  **Citation:** The content is based on the provided text, but the output must be 100% original phrasing.
5.  **No New Advice:** Do NOT add new clinical advice, thresholds, or recommendations that are not explicitly supported by the input text.

INPUT TEXT:

{text}
"""


def get_rewrite_chain(cfg: Settings, llm: BaseChatModel | None = None) -> Runnable:
    """Build ``prompt | llm | parser`` for the rewrite step."""
    prompt = ChatPromptTemplate.from_template(INGESTION_PROMPT)
    if llm is None:
        llm = ChatOpenAI(
            model=cfg.rewrite_model,
            temperature=cfg.rewrite_temperature,
            api_key=cfg.openai_api_key,
            base_url=cfg.llm_base_url,
        )
    return prompt | llm | StrOutputParser()


def build_rewriter(cfg: Settings, llm: BaseChatModel | None = None) -> Rewriter:
    chain = get_rewrite_chain(cfg, llm=llm)

    def rewrite(text: str) -> str:
        return chain.invoke({"text": text})

    return rewrite
