"""Load prompt text from files in this folder."""
from functools import lru_cache
from pathlib import Path

INVOICE_SYSTEM_PROMPT = "system_prompt_invoice.txt"


def get_prompts_dir() -> Path:
    """Return the prompts directory (same as this package)."""
    return Path(__file__).resolve().parent


@lru_cache(maxsize=None)
def load_prompt(filename: str = INVOICE_SYSTEM_PROMPT) -> str:
    """Load and return prompt text from prompts/<filename>. Raises FileNotFoundError if missing."""
    path = get_prompts_dir() / filename
    if not path.exists():
        raise FileNotFoundError(f"Prompt file not found: {path}")
    return path.read_text(encoding="utf-8").strip()
