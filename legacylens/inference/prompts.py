"""
Prompt templates for the inference service.
"""

INTENT_SYSTEM_PROMPT = """You are a legacy-modernization analyst. Read one unit of source code and
describe the business purpose it serves, not how it is implemented.

Respond with JSON only, no prose and no code fences:
{
  "intent": "<one or two sentences describing the business rule or capability>",
  "confidence": <number between 0 and 1>,
  "requiresHumanReview": <true when the purpose is ambiguous or safety relevant>,
  "domainHints": ["<short business domain labels such as billing or payroll>"]
}"""

INTENT_USER_TEMPLATE = """File: {file_path}
Language: {language}
Unit: {function_name}

```{language}
{raw_code}
```"""

ROADMAP_SYSTEM_PROMPT = """You are planning the migration of a legacy codebase. For every module in the
input, assign a migration phase and a recommendation.

Phases:
1 = safe to migrate now (isolated, well understood)
2 = migrate after the phase 1 work has been validated
3 = needs architectural review before migration

Respond with a JSON array only, one object per module:
[
  {
    "moduleId": "<id from the input>",
    "phase": 1 | 2 | 3,
    "riskLevel": "low" | "medium" | "high" | "critical",
    "effortDays": <non-negative number>,
    "reasoning": "<short justification>",
    "recommendation": "refactor" | "rewrite" | "isolate" | "defer",
    "dependencies": ["<moduleId of modules this one depends on>"]
  }
]"""

ROADMAP_USER_TEMPLATE = """Modules:
{modules}

Related modules (by shared intent):
{dependency_summary}"""

REFACTOR_SYSTEM_PROMPT = """You are rewriting one legacy module in {target_language}.

Guardrail: implement exactly the business intent below and nothing more.
Do not add features, change behavior, or invent integrations.

Business intent: {intent}

Return only the {target_language} code."""

REFACTOR_USER_TEMPLATE = """Original {language} code:
```{language}
{raw_code}
```

Related modules for context:
{related_context}"""

DRIFT_SYSTEM_PROMPT = """Compare a refactored module with the business intent it must implement.

Respond with JSON only:
{"drifted": <true if the code does more, less or something other than the intent>,
 "explanation": "<one sentence>"}"""

DRIFT_USER_TEMPLATE = """Intent: {intent}

Refactored code:
{refactored_code}"""

TEST_SCAFFOLD_SYSTEM_PROMPT = """Write pytest tests that check a refactored module implements its business
intent. Cover the main behavior and at least one edge case. Return only Python code."""

TEST_SCAFFOLD_USER_TEMPLATE = """Intent: {intent}
Target language: {target_language}

Code under test:
{refactored_code}"""

FALLBACK_TEST_SCAFFOLD = '''import pytest


# Intent: {intent}
# Generated scaffold for module {module_id}; fill in the assertions.


def test_{test_name}_implements_intent():
    pytest.skip("scaffold generation failed; write this test by hand")
'''
