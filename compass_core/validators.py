from __future__ import annotations
from collections import Counter
from typing import Any, Dict, List, Sequence
import logging

from . import config
from .rounding import percent
from .types import Answers, IntegrityVerdict, SchemaCheck, SCORING_METHODS, DISPLAY_MODES, CLUSTER_DISPLAYS

log = logging.getLogger(__name__)

INSUFFICIENT_DATA = "insufficient_data"
ALL_SAME_ANSWER = "all_same_answer"
EXCESSIVE_SAME_ANSWER = "excessive_same_answer"
REPEATING_PATTERN = "repeating_pattern"
GENUINE_RESPONSES = "genuine_responses"


def flatten_answers(answers: Answers) -> List[int]:
    vals: List[int] = []
    for seq in (answers or {}).values():
        for v in seq or []:
            if v is not None:
                vals.append(v)
    return vals


def _find_repeating_pattern(vals: Sequence[int]) -> Dict[str, Any] | None:
    total = len(vals)
    max_len = min(config.PATTERN_MAX_LEN, total // 4)
    for size in range(config.PATTERN_MIN_LEN, max_len + 1):
        pattern = list(vals[:size])
        matches = windows = 0
        for start in range(0, total - size + 1, size):
            windows += 1
            if list(vals[start:start + size]) == pattern:
                matches += 1
        if windows and matches >= config.PATTERN_MIN_MATCHES and matches / windows >= config.PATTERN_MIN_CONSISTENCY:
            return {"pattern": pattern, "repetitions": matches,
                    "consistency": percent(matches, windows)}
    return None


def validate_answer_patterns(answers: Answers) -> IntegrityVerdict:
    """
    Advisory low-effort check over every answered rating.
    Checks run in order (all-same, dominant value, repeating pattern) and the
    first hit wins. Fewer than INTEGRITY_MIN_ANSWERS answers is always valid.
    """
    vals = flatten_answers(answers)
    total = len(vals)
    if total < config.INTEGRITY_MIN_ANSWERS:
        return IntegrityVerdict(True, INSUFFICIENT_DATA, {"total": total})

    if len(set(vals)) == 1:
        return IntegrityVerdict(False, ALL_SAME_ANSWER, {"value": vals[0], "count": total})

    freq = Counter(vals)
    value, count = freq.most_common(1)[0]
    if count / total > config.DOMINANT_SHARE:
        return IntegrityVerdict(False, EXCESSIVE_SAME_ANSWER, {
            "value": value, "count": count, "total": total,
            "percentage": percent(count, total),
        })

    if total >= config.PATTERN_MIN_ANSWERS:
        hit = _find_repeating_pattern(vals)
        if hit:
            return IntegrityVerdict(False, REPEATING_PATTERN, hit)

    return IntegrityVerdict(True, GENUINE_RESPONSES, {
        "total": total, "unique_values": len(freq),
        "distribution": {k: freq[k] for k in sorted(freq)},
    })


# ---- structural schema check (runs before a definition reaches the engine) ----
def _is_list(x: Any) -> bool:
    return isinstance(x, list)


def _check_scoring(where: str, cat: Dict[str, Any], errors: List[str]) -> None:
    scoring = cat.get("scoring")
    if not isinstance(scoring, dict):
        return
    method = scoring.get("method")
    questions = cat.get("questions") if _is_list(cat.get("questions")) else []
    if method and method not in SCORING_METHODS:
        errors.append(f"{where}: invalid scoring method: {method}")
    if method == "weighted":
        weights = scoring.get("weights")
        if not _is_list(weights):
            errors.append(f"{where}: weighted scoring requires weights array")
        elif len(weights) != len(questions):
            errors.append(f"{where}: weights array must match questions length")
    if method == "cluster":
        clusters = scoring.get("clusterIndices")
        if not _is_list(clusters):
            errors.append(f"{where}: cluster scoring requires clusterIndices")
            return
        for c_idx, cluster in enumerate(clusters):
            idxs = cluster.get("indices") if isinstance(cluster, dict) else None
            if not _is_list(idxs):
                errors.append(f"{where}, Cluster {c_idx}: indices array is required")
                continue
            bad = [i for i in idxs if not isinstance(i, int) or not 0 <= i < len(questions)]
            if bad:
                errors.append(f"{where}, Cluster {c_idx}: indices out of range: {bad}")


def validate_test_schema(raw: Dict[str, Any]) -> SchemaCheck:
    errors: List[str] = []
    if not isinstance(raw, dict):
        return SchemaCheck(False, ["definition must be a JSON object"])
    if not raw.get("testId"):
        errors.append("testId is required")
    if not raw.get("testName"):
        errors.append("testName is required")
    sections = raw.get("sections")
    if not _is_list(sections):
        errors.append("sections array is required")
        sections = []

    seen_keys: set[str] = set()
    first_method: Dict[str, str] = {}
    for idx, section in enumerate(sections):
        if not isinstance(section, dict):
            errors.append(f"Section {idx}: must be an object")
            continue
        if not section.get("sectionId"):
            errors.append(f"Section {idx}: sectionId is required")
        cats = section.get("categories")
        if not _is_list(cats):
            errors.append(f"Section {idx}: categories array is required")
            continue
        for cat_idx, cat in enumerate(cats):
            where = f"Section {idx}, Category {cat_idx}"
            if not isinstance(cat, dict):
                errors.append(f"{where}: must be an object")
                continue
            key = cat.get("key")
            if not key:
                errors.append(f"{where}: key is required")
            elif key in seen_keys:
                errors.append(f"{where}: duplicate category key {key}")
            else:
                seen_keys.add(key)
            if not _is_list(cat.get("questions")):
                errors.append(f"{where}: questions array is required")
            _check_scoring(where, cat, errors)
            if cat_idx == 0 and section.get("sectionId"):
                first_method[section["sectionId"]] = (cat.get("scoring") or {}).get("method") or "sum"

    reporting = raw.get("reporting")
    if not isinstance(reporting, dict):
        errors.append("reporting configuration is required")
    else:
        for r_idx, rs in enumerate(reporting.get("sections") or []):
            display = rs.get("display") if isinstance(rs, dict) else None
            if display not in DISPLAY_MODES:
                errors.append(f"Reporting section {r_idx}: unknown display {display}")
                continue
            sid = rs.get("sectionId")
            if display in CLUSTER_DISPLAYS and sid in first_method and first_method[sid] != "cluster":
                errors.append(f"Reporting section {r_idx}: display {display} needs a cluster-scored first category in {sid}")

    if errors:
        log.debug("schema check found %d errors", len(errors))
    return SchemaCheck(valid=not errors, errors=errors)
