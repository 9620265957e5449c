"""Configuration constants for the generation gate."""

# LLM settings
LLM_MODEL_PRIMARY = "gemini-3-flash-preview"
LLM_MODEL_FALLBACKS = ["gemini-2.0-flash"]
LLM_TEMPERATURE = 0.7

# Orchestrator retry settings
PRIMARY_MODEL_ATTEMPTS = 2
FALLBACK_MODEL_ATTEMPTS = 1
MODEL_BACKOFF_BASE_S = 0.9
MODEL_BACKOFF_STEP_S = 0.45
RETRY_AFTER_CAP_S = 5.0
MODEL_TIMEOUT_S = 18.0
REQUEST_TIMEOUT_S = 40.0

# HTTP statuses treated as transient backend failures
RETRYABLE_STATUS_CODES = {408, 429, 503, 504}

# Reference acquisition
REFERENCE_LIMIT = 3
REFERENCE_TIMEOUT_S = 6.0
REFERENCE_ATTEMPTS = 2
REFERENCE_BACKOFF_S = 0.4
REFERENCE_CACHE_TTL_S = 30 * 60
REFERENCE_CACHE_MAX_ENTRIES = 256
REFERENCE_FETCH_CONCURRENCY = 3
REFERENCE_FETCH_CONCURRENCY_BOUNDS = (2, 10)
REFERENCE_QUERY_SUFFIX = "news"

# Gate attempts (first attempt + one similarity retry)
MAX_GATE_ATTEMPTS = 2

# Similarity defaults
SIMILARITY_TITLE_JACCARD = 0.52
SIMILARITY_LEAD_JACCARD = 0.38
SIMILARITY_LEAD_SIGNATURE = 0.34
SIMILARITY_LEAD_COMPOSITE = 0.44
SIMILARITY_SPAN_LENGTH = 16
SIMILARITY_SPAN_BOUNDS = (16, 24)
SIMILARITY_SPAN_STEP = 3
SIMILARITY_SIGNATURE_CHARS = 18

# Grounding defaults
GROUNDING_MIN_SHARED_TOKENS = 2
GROUNDING_MIN_JACCARD = 0.08

# Schema defaults per mode
TITLE_MAX_CHARS = 60
NEWS_TITLE_MAX_CHARS = 80
DRAFT_CONTENT_MAX_CHARS = 1200
NEWS_CONTENT_MAX_CHARS = 2000
DRAFT_MEDIA_SLOTS = (1, 3)
LONGFORM_MEDIA_SLOTS = (3, 5)
LONGFORM_MIN_SENTENCES = 15
NEWS_ITEMS_PER_BATCH = 3

# Ops counters
OPS_FLUSH_DEBOUNCE_S = 0.35
OPS_COUNTER_KEYS = (
    "requests",
    "success",
    "retries",
    "parseFailures",
    "schemaBlocks",
    "similarityBlocks",
    "groundingBlocks",
    "complianceBlocks",
    "fallbackRecoveries",
    "modelEmpty",
    "referenceFallbacks",
)

# Compliance
ATTRIBUTION_WINDOW_CHARS = 60

# Emotion keyword table used for seeding and inference
EMOTION_KEYWORDS = {
    "immersion": [
        "정치", "속보", "긴급", "갈등", "충돌", "시위", "노동", "외교", "분쟁",
        "politics", "breaking", "conflict", "protest", "tension", "diplomatic",
    ],
    "clarity": [
        "분석", "해설", "경제", "정책", "데이터", "지표", "산업", "기술", "리포트",
        "analysis", "economy", "policy", "data", "industry", "technology", "report",
    ],
    "serenity": [
        "회복", "안정", "웰빙", "건강", "환경", "기후", "자연", "커뮤니티", "돌봄",
        "wellbeing", "wellness", "health", "recovery", "nature", "climate", "community",
    ],
    "vibrance": [
        "문화", "연예", "콘텐츠", "축제", "행사", "스포츠", "미담", "선행", "여가",
        "culture", "entertainment", "festival", "sports", "highlight", "lifestyle", "positive",
    ],
    "gravity": [
        "사건", "사고", "재난", "범죄", "수사", "안전", "경고", "위험", "피해", "사망",
        "incident", "accident", "disaster", "crime", "investigation", "risk", "warning", "fatal",
    ],
    "spectrum": [],
}

# Seeds used when a news request arrives without keywords
EMOTION_DEFAULT_SEEDS = {
    "immersion": ["politics", "diplomacy"],
    "clarity": ["economy", "technology policy"],
    "serenity": ["wellbeing", "climate"],
    "vibrance": ["culture", "sports"],
    "gravity": ["disaster", "investigation"],
    "spectrum": ["world news"],
}

EMOTION_ALIASES = {
    "intense": "immersion",
    "alert": "immersion",
    "tension": "immersion",
    "analysis": "clarity",
    "calm": "serenity",
    "recovery": "serenity",
    "positive": "vibrance",
    "joy": "vibrance",
    "caution": "gravity",
    "risk": "gravity",
    "balanced": "spectrum",
    "neutral": "spectrum",
    "몰입": "immersion",
    "긴장": "immersion",
    "통찰": "clarity",
    "분석": "clarity",
    "회복": "serenity",
    "안정": "serenity",
    "설렘": "vibrance",
    "활력": "vibrance",
    "여운": "gravity",
    "성찰": "gravity",
    "균형": "spectrum",
    "중립": "spectrum",
}
