from __future__ import annotations
import json, importlib.resources as ir
import logging
from typing import Any, Dict, List

from . import config
from .types import (
    AverageScoring, Category, ClusterDef, ClusterScoring, DemographicField, Page, Pagination,
    Rating, ReportingSection, ReverseScoring, ScoringSpec, Section, SumScoring, TestDefinition,
    UnknownScoring, WeightedScoring,
)
from .validators import validate_test_schema

log = logging.getLogger(__name__)


class DefinitionError(RuntimeError):
    def __init__(self, test_id: str, errors: List[str], missing: bool = False):
        self.test_id = test_id
        self.errors = list(errors)
        self.missing = missing
        super().__init__(f"test definition {test_id!r}: " + "; ".join(self.errors))


def parse_scoring(raw: Dict[str, Any] | None) -> ScoringSpec:
    raw = raw or {}
    method = raw.get("method") or "sum"
    if method == "sum":
        return SumScoring()
    if method == "average":
        return AverageScoring()
    if method == "weighted":
        return WeightedScoring(weights=[float(w) if w is not None else 1.0 for w in raw.get("weights") or []])
    if method == "cluster":
        clusters = [
            ClusterDef(name=str(c.get("name", "")), indices=[int(i) for i in c.get("indices") or []])
            for c in raw.get("clusterIndices") or [] if isinstance(c, dict)
        ]
        return ClusterScoring(clusters=clusters)
    if method == "reverse":
        return ReverseScoring()
    return UnknownScoring(method=str(method))


def _parse_category(raw: Dict[str, Any]) -> Category:
    return Category(
        key=str(raw.get("key", "")),
        title=str(raw.get("title", "")),
        questions=[str(q) for q in raw.get("questions") or []],
        scoring=parse_scoring(raw.get("scoring")),
    )


def _parse_section(raw: Dict[str, Any]) -> Section:
    pag = raw.get("pagination") or {}
    return Section(
        section_id=str(raw.get("sectionId", "")),
        title=str(raw.get("title", "")),
        categories=[_parse_category(c) for c in raw.get("categories") or []],
        pagination=Pagination(type=pag.get("type", "category"),
                              chunk_size=int(pag.get("chunkSize") or config.DEFAULT_CHUNK_SIZE)),
    )


def parse_definition(raw: Dict[str, Any]) -> TestDefinition:
    reporting = raw.get("reporting") or {}
    completion = reporting.get("completionMessage") or {}
    demographics = raw.get("demographics") or {}
    return TestDefinition(
        test_id=str(raw.get("testId", "")),
        test_name=str(raw.get("testName", "")),
        sections=[_parse_section(s) for s in raw.get("sections") or []],
        reporting_sections=[
            ReportingSection(
                section_id=str(r.get("sectionId", "")),
                display=str(r.get("display", "")),
                title=r.get("title") or "",
                description=r.get("description") or "",
                guidance=r.get("guidance") or "",
            )
            for r in reporting.get("sections") or []
        ],
        demographic_fields=[
            DemographicField(key=f["key"], label=f.get("label", f["key"]),
                             required=bool(f.get("required", False)), validation=f.get("validation"))
            for f in demographics.get("fields") or [] if f.get("key")
        ],
        completion_title=completion.get("title", ""),
        completion_message=completion.get("message", ""),
    )


def read_raw_test(test_id: str) -> Dict[str, Any]:
    """Raw JSON for ``test_id`` from TESTS_DIR or the packaged tests."""
    name = f"{test_id}.json"
    base = config.tests_dir()
    try:
        if base is not None:
            text = (base / name).read_text(encoding="utf-8")
        else:
            text = ir.files(__package__).joinpath(f"data/tests/{name}").read_text(encoding="utf-8")
    except (FileNotFoundError, NotADirectoryError):
        raise DefinitionError(test_id, ["not found"], missing=True) from None
    try:
        return json.loads(text)
    except ValueError as exc:
        raise DefinitionError(test_id, [f"invalid JSON: {exc}"]) from exc


def load_test(test_id: str, *, validate: bool = True) -> TestDefinition:
    raw = read_raw_test(test_id)
    if validate:
        check = validate_test_schema(raw)
        if not check.valid:
            log.error("test %s failed schema validation: %s", test_id, check.errors)
            raise DefinitionError(test_id, check.errors)
    return parse_definition(raw)


def initialize_answers(definition: TestDefinition) -> Dict[str, List[Rating]]:
    return {cat.key: [None] * len(cat.questions) for sec in definition.sections for cat in sec.categories}


def build_pages(definition: TestDefinition) -> List[Page]:
    pages: List[Page] = []
    for sec in definition.sections:
        pag = sec.pagination
        if pag.type == "all":
            if sec.categories:
                pages.append(Page(section_id=sec.section_id, category_key=sec.categories[0].key,
                                  title=sec.title,
                                  questions=[q for c in sec.categories for q in c.questions]))
            continue
        for cat in sec.categories:
            if pag.type == "chunk":
                size = max(1, pag.chunk_size)
                starts = list(range(0, len(cat.questions), size)) or [0]
                for part, start in enumerate(starts, 1):
                    title = f"{cat.title} - Part {part}" if len(starts) > 1 else cat.title
                    pages.append(Page(sec.section_id, cat.key, title, cat.questions[start:start + size], start))
            else:
                pages.append(Page(sec.section_id, cat.key, cat.title, list(cat.questions), 0))
    return pages
