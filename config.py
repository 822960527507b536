"""
Central config for the report agent. Everything pulls from here so
settings only need to change in one place. Values can be overridden
with environment variables of the same name.
"""

import os
from pathlib import Path

# --- Paths ---
BASE_DIR = Path(__file__).parent
OUTPUT_DIR = Path(os.getenv("OUTPUT_DIR", BASE_DIR / "output"))

# --- LLM ---
# gpt-4o-mini is fast and cheap enough to run one call per finding
LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4o-mini")
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.2"))
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "60"))

# --- Web search (Brave) ---
BRAVE_API_KEY = os.getenv("BRAVE_SEARCH_API_KEY") or os.getenv("BRAVESEARCH_API_KEY")
SEARCH_RESULT_COUNT = int(os.getenv("SEARCH_RESULT_COUNT", "10"))
SEARCH_TIMEOUT = float(os.getenv("SEARCH_TIMEOUT", "15"))

# --- Rate limiting ---
# Brave's paid tier allows 20 requests/second, so 7 per batch with a 1s
# gap stays well under it. OpenAI takes much more concurrency.
SEARCH_BATCH_SIZE = int(os.getenv("SEARCH_BATCH_SIZE", "7"))
SEARCH_BATCH_DELAY = float(os.getenv("SEARCH_BATCH_DELAY", "1.0"))
SYNTHESIS_BATCH_SIZE = int(os.getenv("SYNTHESIS_BATCH_SIZE", "15"))
SYNTHESIS_BATCH_DELAY = float(os.getenv("SYNTHESIS_BATCH_DELAY", "0.5"))

# --- Prompt budgets ---
# first 16k chars of the report (~4000 tokens) is plenty for the issue list
REPORT_TEXT_CHAR_LIMIT = int(os.getenv("REPORT_TEXT_CHAR_LIMIT", "16000"))
SEARCH_RESULTS_CHAR_LIMIT = int(os.getenv("SEARCH_RESULTS_CHAR_LIMIT", "8000"))
