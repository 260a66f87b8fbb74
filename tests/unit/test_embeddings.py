from __future__ import annotations

import math

import pytest

from umbil.core.embeddings import _FallbackEmbeddings
from umbil.core.embeddings import embed_texts
from umbil.core.embeddings import get_embeddings
from umbil.core.embeddings import prepare_for_embedding

pytestmark = pytest.mark.unit


def test_get_embeddings_falls_back_without_api_key():
    embeddings = get_embeddings()

    assert isinstance(embeddings, _FallbackEmbeddings)
    assert get_embeddings() is embeddings


def test_fallback_embeddings_are_deterministic_and_normalised():
    embeddings = _FallbackEmbeddings(dim=16)

    first = embeddings.embed_query("Amoxicillin 500 mg three times daily")
    second = embeddings.embed_documents(["Amoxicillin 500 mg three times daily"])[0]

    assert first == second
    assert len(first) == 16
    assert math.isclose(sum(v * v for v in first), 1.0)
    assert embeddings.embed_query("") == [0.0] * 16


def test_prepare_for_embedding_flattens_newlines():
    assert prepare_for_embedding("# Title\n\n- item") == "# Title  - item"


def test_embed_texts_flattens_every_text():
    embeddings = _FallbackEmbeddings(dim=8)

    vectors = embed_texts(embeddings, ["a\nb", "c"])

    assert vectors == [embeddings.embed_query("a b"), embeddings.embed_query("c")]
