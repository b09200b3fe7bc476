import json
import os
import sys
import time
from types import SimpleNamespace

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import pytest

from ecoscan.engine import AnalysisEngine, ResultCache
from ecoscan.gateway import EnrichmentGateway


QUINOA_SALAD = {
    "name": "Organic Quinoa Salad",
    "brand": "GreenBowl",
    "category": "food",
    "ingredients": "quinoa, kale, chickpeas, olive oil, lemon juice",
    "certifications": ["Organic", "Non-GMO"],
    "packaging": "recyclable cardboard bowl",
    "originCountry": "Local farm, Oregon",
    "organic": True,
    "locallySourced": True,
    "nutrition": {
        "calories": 350,
        "protein": "12g",
        "fiber": 6,
        "sugar": 4,
        "sodium": "300 mg",
        "fat": 12,
    },
}

PLASTIC_BOTTLE = {
    "productName": "Spring Water",
    "packaging": "single-use plastic bottle",
}

CHIPS = {
    "title": "Cheesy Crunch Chips",
    "category": "snack",
    "ingredients": "potatoes, vegetable oil, salt, msg, artificial colors, preservatives",
    "nutrition": {
        "calories": 160,
        "fat": 10,
        "sodium": 0.17,
        "sugar": 1,
        "fiber": 1,
        "protein": 2,
    },
}


def fake_completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class FakeOpenAI:
    """Stands in for openai.OpenAI: records calls, returns canned text or raises."""

    def __init__(self, content=None, exc=None, delay=0.0):
        self.content = content
        self.exc = exc
        self.delay = delay
        self.calls = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        self.calls.append(kwargs)
        if self.delay:
            time.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        return fake_completion(self.content)


def ai_payload(**sub_scores):
    body = {
        "sub_scores": sub_scores,
        "certifications": ["USDA Organic"],
        "insights": ["Plant-based protein with a low footprint"],
        "recommendations": ["Reuse the bowl or recycle it with paper"],
    }
    return "```json\n" + json.dumps(body) + "\n```"


@pytest.fixture
def quinoa():
    return dict(QUINOA_SALAD)


@pytest.fixture
def bottle():
    return dict(PLASTIC_BOTTLE)


@pytest.fixture
def chips():
    return dict(CHIPS)


@pytest.fixture
def offline_engine():
    return AnalysisEngine(EnrichmentGateway(enabled=False))


@pytest.fixture
def ai_client():
    return FakeOpenAI(ai_payload(packaging=78, carbon=72, materials=80, health_score=86, sustainability_score=84))


@pytest.fixture
def ai_engine(ai_client):
    return AnalysisEngine(EnrichmentGateway(client=ai_client, timeout=2.0, enabled=True), cache=ResultCache())
