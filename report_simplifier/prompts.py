"""
Prompt templates for Gemini
Note: JSON example braces in .format() templates are doubled ({{ }}) to escape them.
"""

# --- JSON wrapper applied to every task prompt ---

JSON_ONLY_PROMPT = """
Perform the following action and respond ONLY with valid JSON (no markdown, no extra text).

PROMPT: {task_prompt}

EXAMPLE OUTPUT FORMAT:
{example_json}
"""

# --- Extraction + normalization ---

EXTRACTION_PROMPT = """
From this medical report text, extract all test results, correct typos (e.g., "Hemglobin" -> "Hemoglobin"),
and normalize them into structured data with value, unit, status (low/normal/high), and reference range.

Text: "{raw_text}"
"""

EXTRACTION_EXAMPLE = {
    "tests": [
        {
            "name": "Hemoglobin",
            "value": 10.2,
            "unit": "g/dL",
            "status": "low",
            "ref_range": {"low": 12.0, "high": 15.0},
        }
    ]
}

# --- Patient-friendly summary ---

SUMMARY_PROMPT = """
Create a simple, patient-friendly summary for these medical test results.
Do NOT give diagnosis; use cautious, plain-language explanations.
Tests: {tests_json}
"""

SUMMARY_EXAMPLE = {
    "summary": "Low hemoglobin and high white blood cell count.",
    "explanations": [
        "Low hemoglobin may relate to anemia.",
        "High WBC can occur with infections.",
    ],
}
