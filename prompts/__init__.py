"""Load extraction prompt text from files in this folder."""
from pathlib import Path

BASE_PROMPT_FILE = "extraction_base.txt"
GENERIC_PROMPT_FILE = "extraction_generic.txt"

# Classifier type -> specialized prompt; anything else uses the generic prompt
PROMPT_FILES_BY_TYPE = {
    "nfe": "extraction_nfe.txt",
    "nfce": "extraction_nfe.txt",
    "pró-labore": "extraction_prolabore.txt",
    "pro-labore": "extraction_prolabore.txt",
    "prolabore": "extraction_prolabore.txt",
    "recibo": "extraction_recibo.txt",
    "boleto": "extraction_boleto.txt",
}


def get_prompts_dir() -> Path:
    """Return the prompts directory (same as this package)."""
    return Path(__file__).resolve().parent


def load_prompt(filename: str) -> str:
    """Load and return prompt text from prompts/<filename>. Raises FileNotFoundError if missing."""
    path = get_prompts_dir() / filename
    if not path.exists():
        raise FileNotFoundError(f"Prompt file not found: {path}")
    return path.read_text(encoding="utf-8").strip()


def prompt_for_document_type(document_type: str | None) -> str:
    """Base instructions + type-specialized section."""
    key = (document_type or "").strip().lower()
    specialized = PROMPT_FILES_BY_TYPE.get(key, GENERIC_PROMPT_FILE)
    return f"{load_prompt(BASE_PROMPT_FILE)}\n\n---\n\n{load_prompt(specialized)}"
