import asyncio
import json

import pytest
from openai import InternalServerError

from reviewlens.core.errors import GenerationSchemaError
from reviewlens.models.manifest import Manifest
from reviewlens.models.theme import Theme
from reviewlens.schemas.theme import ThemeLabel
from reviewlens.services.aspects import majority_severity, tag_aspects, title_from_aspects, top_aspects
from reviewlens.services.llm_payload import parse_payload
from reviewlens.services.normalizer import normalize_review
from reviewlens.services.themes import ThemeLabeler

LABEL = {"name": "Confusing pricing", "summary": "Customers cannot predict their bill.", "severity": "high"}


@pytest.fixture()
def pricing_evidence(sample_reviews):
    return [
        normalize_review(r["body"], r["product_id"], r["review_date"], review_id=r["id"], rating=r["rating"])
        for r in sample_reviews
        if r["id"].startswith("p")
    ]


def _label(labeler, evidence, cluster_id="cl_0123456789ab"):
    return asyncio.run(labeler.label("unitA", cluster_id, evidence))


def test_fallback_without_credentials_is_deterministic(db, make_chat, pricing_evidence):
    labeler = ThemeLabeler(db, make_chat(available=False))

    first = _label(labeler, pricing_evidence)
    second = _label(labeler, pricing_evidence)

    assert first == second
    assert first.fallback
    assert first.name == "Pricing clarity"
    assert first.summary == "Theme derived from 3 reviews focusing on pricing."
    assert first.severity == "high"


def test_valid_response_is_used(db, make_chat, pricing_evidence):
    chat = make_chat([json.dumps(LABEL)])
    labeled = _label(ThemeLabeler(db, chat), pricing_evidence)

    assert (labeled.name, labeled.summary, labeled.severity) == (LABEL["name"], LABEL["summary"], "high")
    assert not labeled.fallback
    sent = json.loads(chat.calls[0]["user"])
    assert sent["top_aspects"] == ["pricing"]
    assert [quote["id"] for quote in sent["example_quotes"]] == ["p1", "p2", "p3"]
    assert sent["counts"] == {"reviews_in_cluster": 3, "evidence": 3}


@pytest.mark.parametrize(
    "content",
    [
        "```json\n" + json.dumps(LABEL) + "\n```",
        "Here is the label: " + json.dumps(LABEL) + " Let me know if you need more.",
    ],
)
def test_wrapped_json_is_accepted(db, make_chat, pricing_evidence, content):
    labeled = _label(ThemeLabeler(db, make_chat([content])), pricing_evidence)
    assert labeled.name == LABEL["name"]


@pytest.mark.parametrize(
    "content",
    [
        "not json at all",
        json.dumps({**LABEL, "severity": "critical"}),
        json.dumps({"name": "x"}),
        "",
    ],
)
def test_invalid_response_falls_back(db, make_chat, pricing_evidence, content):
    labeled = _label(ThemeLabeler(db, make_chat([content])), pricing_evidence)
    assert labeled.fallback


@pytest.mark.parametrize("status", [400, 429])
def test_client_errors_from_provider_fall_back(db, make_chat, pricing_evidence, status_error, status):
    chat = make_chat([status_error(status)])

    labeled = _label(ThemeLabeler(db, chat), pricing_evidence)

    assert labeled.fallback
    assert labeled.name == "Pricing clarity"
    assert len(chat.calls) == 1
    assert labeled.name == "Pricing clarity"


def test_stored_theme_is_reused_for_same_prompt_version(db, make_chat, pricing_evidence):
    manifest = Manifest(
        business_unit_id="unitA",
        period="2025Q3",
        start_date="2025-07-01",
        end_date="2025-09-30",
        pipeline_version="1.0.0",
        status="completed",
    )
    db.add(manifest)
    db.flush()
    db.add(
        Theme(
            manifest_id=manifest.id,
            product_id="unitA",
            cluster_id="cl_cached000000",
            topic_key="cached000000",
            prompt_version=1,
            name="Stored name",
            summary="Stored summary text.",
            severity="low",
            evidence_ids=["p1"],
        )
    )
    db.commit()

    chat = make_chat([json.dumps(LABEL)])
    cached = _label(ThemeLabeler(db, chat, prompt_version=1), pricing_evidence, "cl_cached000000")
    fresh = _label(ThemeLabeler(db, chat, prompt_version=2), pricing_evidence, "cl_cached000000")

    assert cached.cached
    assert cached.name == "Stored name"
    assert not fresh.cached
    assert fresh.name == LABEL["name"]
    assert len(chat.calls) == 1


def test_transport_errors_propagate_after_retries(db, make_chat, pricing_evidence, status_error):
    chat = make_chat([status_error(503)])
    with pytest.raises(InternalServerError):
        _label(ThemeLabeler(db, chat), pricing_evidence)
    assert len(chat.calls) == 2


def test_parse_payload_rejects_empty_content():
    with pytest.raises(GenerationSchemaError):
        parse_payload("   ", ThemeLabel)


def test_aspect_helpers():
    assert tag_aspects("Support never answered our ticket") == ["support"]
    assert tag_aspects("Nothing specific here") == ["usability"]
    assert "reliability" in tag_aspects("The app crashed and support ignored us")
    assert top_aspects(["support", "pricing", "pricing", "support", "reporting"], 2) == ["support", "pricing"]
    assert majority_severity(["low", "high"]) == "high"
    assert majority_severity(["low", "low", "high"]) == "low"
    assert majority_severity([]) == "medium"
    assert title_from_aspects(["feature_gap"]) == "Feature gaps"
    assert title_from_aspects([]) is None
