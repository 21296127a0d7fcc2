import os

# Catalog backend (storage, records, preprocess function)
SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_ANON_KEY = os.environ.get("SUPABASE_ANON_KEY", "")
SUPABASE_SERVICE_ROLE_KEY = os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")

# Vision provider settings
OLLAMA_URL = os.environ.get("OLLAMA_URL", "http://localhost:11434")
OLLAMA_API_KEY = os.environ.get("OLLAMA_API_KEY", "")

OPENAI_BASE_URL = os.environ.get("OPENAI_BASE_URL", "https://api.openai.com/v1")
OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")

HUGGINGFACE_BASE_URL = os.environ.get("HUGGINGFACE_BASE_URL", "https://router.huggingface.co/v1")
HUGGINGFACE_API_KEY = os.environ.get("HUGGINGFACE_API_KEY", "")

VISION_MODEL = os.environ.get("VISION_MODEL", "gpt-4.1-mini")
HUGGINGFACE_VISION_MODEL = os.environ.get("HUGGINGFACE_VISION_MODEL", "Qwen/Qwen2-VL-7B-Instruct")
VISION_MAX_OUTPUT_TOKENS = int(os.environ.get("VISION_MAX_OUTPUT_TOKENS", "500"))


def resolve_vision_provider() -> str:
    """Resolve the vision provider from environment variables.

    Returns:
        Provider name: 'ollama', 'openai', or 'huggingface'

    Raises:
        ValueError: If VISION_PROVIDER is set to an invalid value
    """
    raw = os.environ.get("VISION_PROVIDER", "auto").strip().lower()
    if raw in ("ollama", "openai", "huggingface"):
        return raw
    if raw == "auto":
        if os.environ.get("OPENAI_API_KEY"):
            return "openai"
        if os.environ.get("HUGGINGFACE_API_KEY"):
            return "huggingface"
        return "ollama"
    raise ValueError(f"Invalid VISION_PROVIDER: {raw}")


VISION_PROVIDER = resolve_vision_provider()

# Analysis settings
ANALYSIS_TIMEOUT_SECONDS = float(os.environ.get("ANALYSIS_TIMEOUT_SECONDS", "120"))
ANALYSIS_CONCURRENCY = int(os.environ.get("ANALYSIS_CONCURRENCY", "4"))
ENTITY_CONFIDENCE = 0.9
TITLE_TAG_MIN_LENGTH = 3

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
