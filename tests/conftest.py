from __future__ import annotations

import pytest

from compass_core.definitions import parse_definition
from compass_core.types import TestDefinition


def build_synthetic_definition(*, test_id: str = "synthetic", skill_chunk: int = 4) -> dict:
    """Create a small raw definition that touches every scoring method and pagination type."""

    def questions(prefix: str, n: int) -> list[str]:
        return [f"{prefix} statement {i + 1}" for i in range(n)]

    return {
        "testId": test_id,
        "testName": "Synthetic Compass",
        "demographics": {
            "fields": [
                {"key": "studentName", "label": "Full Name", "required": True},
                {"key": "grade", "label": "Grade", "required": True},
                {"key": "email", "label": "Email", "required": False, "validation": "email"},
                {"key": "phone", "label": "Contact Number", "required": False, "validation": "phone"},
            ]
        },
        "sections": [
            {
                "sectionId": "sec-cats",
                "title": "Interests",
                "pagination": {"type": "category"},
                "categories": [
                    {"key": "c_alpha", "title": "Alpha", "questions": questions("Alpha", 3),
                     "scoring": {"method": "sum"}},
                    {"key": "c_beta", "title": "Beta", "questions": questions("Beta", 3),
                     "scoring": {"method": "average"}},
                    {"key": "c_gamma", "title": "Gamma", "questions": questions("Gamma", 3),
                     "scoring": {"method": "weighted", "weights": [1, 2, 1]}},
                    {"key": "c_delta", "title": "Delta", "questions": questions("Delta", 3),
                     "scoring": {"method": "reverse"}},
                ],
            },
            {
                "sectionId": "sec-skills",
                "title": "Skills",
                "pagination": {"type": "chunk", "chunkSize": skill_chunk},
                "categories": [
                    {
                        "key": "k_skills",
                        "title": "Skills",
                        "questions": questions("Skill", 10),
                        "scoring": {
                            "method": "cluster",
                            "clusterIndices": [
                                {"name": "Focus", "indices": [0, 1]},
                                {"name": "Drive", "indices": [2, 3]},
                                {"name": "Care", "indices": [4, 5]},
                                {"name": "Craft", "indices": [6, 7]},
                                {"name": "Logic", "indices": [8, 9]},
                            ],
                        },
                    }
                ],
            },
            {
                "sectionId": "sec-all",
                "title": "Readiness",
                "pagination": {"type": "all"},
                "categories": [
                    {"key": "m_one", "title": "Plans", "questions": questions("Plan", 2)},
                    {"key": "m_two", "title": "Support", "questions": questions("Support", 2)},
                ],
            },
        ],
        "reporting": {
            "sections": [
                {"sectionId": "sec-cats", "display": "top3-bottom3", "title": "Interest Areas",
                 "description": "<p>How you rated each area.</p>"},
                {"sectionId": "sec-skills", "display": "clusters", "title": "Skill Clusters"},
                {"sectionId": "sec-all", "display": "total-only", "title": "Readiness"},
            ],
            "completionMessage": {"title": "All done", "message": "Thanks for taking part."},
        },
    }


def synthetic_answers() -> dict[str, list[int | None]]:
    return {
        "c_alpha": [5, 4, 5],        # 14
        "c_beta": [2, 2, 3],         # 7
        "c_gamma": [3, 4, 2],        # 3 + 8 + 2 = 13
        "c_delta": [1, 2, None],     # 5 + 4 + 0 = 9
        "k_skills": [5, 5, 1, 2, 4, 3, 2, 2, 4, 4],
        "m_one": [3, 4],
        "m_two": [2, None],
    }


@pytest.fixture
def synthetic_raw() -> dict:
    return build_synthetic_definition()


@pytest.fixture
def synthetic_definition(synthetic_raw) -> TestDefinition:
    return parse_definition(synthetic_raw)


@pytest.fixture
def answers() -> dict[str, list[int | None]]:
    return synthetic_answers()
