# --------------------------------------------------------------------------------------
# Pipeline configuration (environment driven, .env supported)
# --------------------------------------------------------------------------------------
import os

from dotenv import load_dotenv

load_dotenv()


class PipelineConfig:
    """A single class to hold all configuration variables for the pipeline."""
    GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY")
    PLANNER_MODEL = os.getenv("PLANNER_MODEL", "gemini-3-pro-preview")
    RENDER_MODEL = os.getenv("RENDER_MODEL", "gemini-3-pro-image-preview")
    PLAN_USER_PROMPT = "Generate the variation profiles."
    REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "300"))

    # Render output
    ASPECT_RATIO = os.getenv("ASPECT_RATIO", "16:9")
    IMAGE_SIZE = os.getenv("IMAGE_SIZE", "1K")
    SUPPORTED_ASPECT_RATIOS = ("1:1", "2:3", "3:2", "3:4", "4:3", "4:5", "5:4", "9:16", "16:9", "21:9")
    SUPPORTED_IMAGE_SIZES = ("1K", "2K", "4K")

    # Reference images the render model accepts; anything else is re-encoded to PNG
    SUPPORTED_REFERENCE_MIME_TYPES = ("image/png", "image/jpeg", "image/webp", "image/heic", "image/heif")

    # Batch bounds
    MIN_VARIATIONS = 1
    MAX_VARIATIONS = 5
    DEFAULT_VARIATIONS = 2

    # Plan rules
    WEIGHT_GAIN_MIN_COUNT = 5
    NATURAL_AGING_KEYWORDS = ("natural aging",)
    STARVATION_KEYWORDS = ("starvation", "famine")

    OUTPUT_DIR = os.getenv("OUTPUT_DIR", "files")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    AUTO_DETECT_SCENARIO = "AI Optimized Analysis (Auto-Detect Best Fit)"
    SCENARIOS = (
        AUTO_DETECT_SCENARIO,
        "Homelessness / Urban Survival (Rough Sleeper)",
        "Severe Memory Loss / Amnesia (Unaware of Past)",
        "Human Trafficking / Forced Labor Context",
        "Voluntary Disappearance / New Identity (Pseudocide)",
        "Fugitive / Evasion of Justice",
        "Mental Health Crisis / Wandering / Untreated",
        "Rural / Off-grid Living (Exposure to elements)",
        "Lost / Wilderness Survival (Disoriented)",
        "Long-term Abduction / Captivity",
        "Substance Abuse Impact / Physical Deterioration",
        "Institutionalized (State Care / Hospital / Prison)",
        "Cult / Sect Affiliation (Specific grooming/attire)",
        "Natural Aging (Standard Control Group)",
        "Natural Aging / Metabolic Change (Weight Gain)",
    )
    GENDERS = ("Male", "Female", "Non-Binary", "Other", "Unspecified")
