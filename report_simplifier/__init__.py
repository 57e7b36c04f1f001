"""Medical Report Simplifier: OCR + Gemini lab report explanations."""

__version__ = "1.0.0"
