"""サンプリングによる生成で使うシステムプロンプトとユーザーメッセージ。"""

import json

from sextant.models.generation import BulkEstimationRequest, PresetGenerationRequest, QuestionGenerationRequest
from sextant.services.catalog import ActivityCatalog, CatalogActivity

QUESTION_SYSTEM_PROMPT = """\
You are a technical architect interviewing a user to estimate a software project.
Generate 4 to 7 technical questions that extract implementation details
(lifecycle, exact technologies, data model, authentication, integrations, deployment).
Write the questions in the same language as the user's description.

Each question has: id, type ("single-choice" | "multiple-choice" | "text" | "range"),
question, description, required.
- single-choice / multiple-choice: options [{id, label, description}]. Add an option with id
  "other" when a free-text answer makes sense.
- text: placeholder, max_length.
- range: min, max, step, unit.

Respond with JSON only:
{"questions": [...], "reasoning": "...", "suggested_tech_category": "FRONTEND|BACKEND|POWER_PLATFORM|MULTI"}
"""

BULK_QUESTION_SYSTEM_PROMPT = """\
You are a technical architect preparing one interview that covers several requirements at once.
Ask as few questions as possible: prefer questions whose answer applies to many requirements.

Each question has the fields of a normal interview question plus:
- scope: "global" (applies to every requirement), "multi-requirement" or "specific"
- affected_requirement_ids: the requirement ids the question is about
  (empty for global, at least one for multi-requirement, exactly one for specific)
- category, technical_context, impact_on_estimate

Also analyze each requirement: complexity ("LOW" | "MEDIUM" | "HIGH"),
ambiguity_score (0.0 to 1.0) and the key topics.

Respond with JSON only:
{"questions": [...], "reasoning": "...", "suggested_tech_category": "...",
 "requirement_analysis": [{"requirement_id": "...", "req_code": "...", "complexity": "MEDIUM",
 "ambiguity_score": 0.0, "topics": ["..."]}]}
"""

PRESET_SYSTEM_PROMPT = """\
You are a technical estimator creating a technology preset from a project description,
the user's interview answers and a catalog of activities.

Rules:
- Select activities only from the catalog, using their exact codes and base_hours.
- confidence 0.0 to 1.0 per activity; priority "core" (>= 0.8), "recommended" (0.6 to 0.79)
  or "optional" (0.4 to 0.59). Do not include activities below 0.4.
- Set every driver to one of its allowed values. When unsure use the default.
- Include 2 to 5 risk codes that genuinely apply.

Respond with JSON only:
{"preset": {"name": "...", "description": "...", "confidence": 0.0, "reasoning": "...",
 "tech_category": "...", "activities": [{"code": "...", "title": "...", "base_hours": 0,
 "confidence": 0.0, "priority": "core", "group": "...", "reasoning": "..."}],
 "driver_values": {"CODE": "VALUE"}, "risk_codes": ["..."]}}
"""

BULK_ESTIMATION_SYSTEM_PROMPT = """\
You are a technical estimator. Estimate every requirement separately using the scoped
interview answers: a global answer applies to every requirement, other answers only
to their affected requirements.

Select activities only from the catalog. Reference the question and answer that
justify each activity when there is one. If a requirement cannot be estimated,
return success false with an error message and no activities.

Respond with JSON only:
{"estimations": [{"requirement_id": "...", "req_code": "...", "success": true,
 "activities": [{"code": "...", "name": "...", "base_hours": 0, "reason": "...",
 "from_question_id": "...", "from_answer": "..."}],
 "confidence_score": 0.0, "reasoning": "...", "error": null}]}
"""


def _catalog_lines(activities: list[CatalogActivity]) -> str:
    return "\n".join(f"- {a.code} [{a.group}] {a.title} ({a.base_hours:g}h)" for a in activities)


def question_message(request: QuestionGenerationRequest) -> str:
    """質問生成のユーザーメッセージを組み立てる。"""
    parts = [f"Description:\n{request.description or '(none)'}"]
    if request.tech_category:
        parts.append(f"Technology category: {request.tech_category}")
    if request.requirements:
        lines = [f"- id={r.id} code={r.req_code} {r.title}: {r.description}" for r in request.requirements]
        parts.append("Requirements:\n" + "\n".join(lines))
    return "\n\n".join(parts)


def preset_message(request: PresetGenerationRequest, catalog: ActivityCatalog) -> str:
    """プリセット生成のユーザーメッセージを組み立てる。"""
    drivers = "\n".join(f"- {d.code}: {', '.join(d.values)} (default {d.default})" for d in catalog.drivers)
    risks = "\n".join(f"- {r.code}: {r.description}" for r in catalog.risks)
    return "\n\n".join(
        [
            f"Description:\n{request.description}",
            "Answers:\n" + json.dumps(request.answers, ensure_ascii=False, indent=2),
            f"Suggested technology category: {request.suggested_tech_category or 'unknown'}",
            "Activity catalog:\n" + _catalog_lines(catalog.for_category(request.suggested_tech_category)),
            f"Drivers:\n{drivers}",
            f"Risks:\n{risks}",
        ]
    )


def bulk_estimation_message(request: BulkEstimationRequest, catalog: ActivityCatalog) -> str:
    """一括見積もりのユーザーメッセージを組み立てる。"""
    requirements = "\n".join(
        f"- id={r.id} code={r.req_code} {r.title}: {r.description}" for r in request.requirements
    )
    answers = [a.model_dump() for a in request.answers.values()]
    return "\n\n".join(
        [
            f"Requirements:\n{requirements}",
            "Scoped answers:\n" + json.dumps(answers, ensure_ascii=False, indent=2),
            "Activity catalog:\n" + _catalog_lines(catalog.for_category(request.tech_category)),
        ]
    )
