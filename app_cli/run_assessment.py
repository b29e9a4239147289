from __future__ import annotations
import os, datetime, logging, sys
from compass_core import config
from compass_core.definitions import DefinitionError, build_pages, initialize_answers, load_test
from compass_core.demographics import clean_demographics, validate_demographics
from compass_core.report import prepare_report_data
from compass_core.report_html import export_report_html, report_summary
from compass_core.scoring import calculate_scores
from compass_core.validators import validate_answer_patterns

def ask(prompt: str) -> str:
    return input(prompt + " ").strip()

def ask_rating(prompt: str) -> int:
    while True:
        v = ask(f"(1-5) {prompt}  [1=not like me, 5=very like me]")
        if v.isdigit() and config.RATING_MIN <= int(v) <= config.RATING_MAX: return int(v)
        print(f"Enter a number from {config.RATING_MIN} to {config.RATING_MAX}.")

def collect_demographics(definition) -> dict:
    while True:
        values = {f.key: ask(f"{f.label}{' *' if f.required else ''}:") for f in definition.demographic_fields}
        check = validate_demographics(values, definition.demographic_fields)
        if check.valid: return clean_demographics(values, definition.demographic_fields)
        for err in check.errors: print(f"  ! {err}")

def main(argv=None):
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "WARNING"), format="%(levelname)s %(name)s: %(message)s")
    args = sys.argv[1:] if argv is None else argv
    test_id = args[0] if args else config.DEFAULT_TEST_ID
    try:
        definition = load_test(test_id)
    except DefinitionError as exc:
        print(f"Cannot load test: {exc}"); return 1
    print(definition.test_name)
    demographics = collect_demographics(definition)
    answers = initialize_answers(definition)
    sections = {s.section_id: s for s in definition.sections}
    for page in build_pages(definition):
        print(f"\n== {page.title} ==")
        sec = sections[page.section_id]
        if sec.pagination.type == "all":
            # one page spans every category in the section
            for cat in sec.categories:
                answers[cat.key] = [ask_rating(q) for q in cat.questions]
            continue
        for i, q in enumerate(page.questions):
            answers[page.category_key][page.question_start_index + i] = ask_rating(q)
    scores = calculate_scores(definition, answers)
    report = prepare_report_data(definition, scores, demographics)
    verdict = validate_answer_patterns(answers)
    if not verdict.valid: print(f"Note: responses flagged ({verdict.reason}).")
    summ = report_summary(report.to_dict()["sections"])
    if summ:
        for k, v in summ.items(): print(f"  {k.replace('_', ' ')}: {v}")
    os.makedirs("reports", exist_ok=True)
    ts = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    path = export_report_html(definition, report, os.path.join("reports", f"report_{definition.test_id}_{ts}.html"))
    print(f"{definition.completion_title or 'Done.'} Report saved to: {path}")
    return 0
if __name__ == "__main__": raise SystemExit(main())
