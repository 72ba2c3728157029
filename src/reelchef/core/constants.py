"""Default model names, paths and pipeline constants."""

from pathlib import Path

# Default models
DEFAULT_WHISPER_MODEL = "whisper-1"
DEFAULT_WHISPER_LANGUAGE = "en"
DEFAULT_COMPLETION_MODEL = "llama2"

# Service endpoints (local whisper.cpp server and Ollama by default)
DEFAULT_WHISPER_URL = "http://127.0.0.1:8080/inference"
DEFAULT_COMPLETION_BASE_URL = "http://localhost:11434/v1"
DEFAULT_GENERATE_URL = "http://localhost:11434/api/generate"

# Paths
DEFAULT_CONFIG_DIR = Path.home() / ".config" / "reelchef"
DEFAULT_DB_PATH = DEFAULT_CONFIG_DIR / "reelchef.db"
DEFAULT_REEL_DIR = Path("./reels")

# Config file
CONFIG_FILE_PATH = DEFAULT_CONFIG_DIR / "config.json"

# External tools
DEFAULT_YT_DLP = "yt-dlp"
DEFAULT_FFMPEG = "ffmpeg"
AUDIO_SAMPLE_RATE = 16000
AUDIO_CHANNELS = 1
AUDIO_BITRATE = "64k"

# Artifact file names inside the reel directory, keyed by source id
MEDIA_SUFFIX = ".mp4"
INFO_SUFFIX = ".info.json"
AUDIO_SUFFIX = ".audio.mp3"

# Downloader output names inside its scratch directory
DOWNLOAD_MEDIA_NAME = "reel.mp4"
DOWNLOAD_INFO_NAME = "reel.info.json"

# Source URLs: https://www.instagram.com/reel/<id>/ and friends
DEFAULT_SOURCE_URL_PATTERN = (
    r"^https?://(?:[A-Za-z0-9-]+\.)*[A-Za-z0-9-]+(?::\d+)?/reels?/([A-Za-z0-9_-]+)(?:[/?#].*)?$"
)

# Queue
DEFAULT_WORKERS = 2
DEFAULT_POLL_INTERVAL = 1.0
BACKOFF_BASE_SECONDS = 60
FETCH_MAX_RETRIES = 3
TRANSCRIBE_MAX_RETRIES = 3
# Extraction failures surface once and are not retried automatically.
EXTRACT_MAX_RETRIES = 0

# Timeouts (seconds)
DEFAULT_HTTP_TIMEOUT = 300.0
DEFAULT_TOOL_TIMEOUT = 900.0

# Completion protocols
PROTOCOL_CHAT = "chat"
PROTOCOL_GENERATE = "generate"
PROTOCOL_CHAT_TOOLS = "chat-tools"
PROTOCOL_GENERATE_TOOLS = "generate-tools"
SUPPORTED_PROTOCOLS = (PROTOCOL_CHAT, PROTOCOL_GENERATE)
DECLARED_PROTOCOLS = SUPPORTED_PROTOCOLS + (PROTOCOL_CHAT_TOOLS, PROTOCOL_GENERATE_TOOLS)

# Re-extraction policy
RECIPE_POLICY_REPLACE = "replace"
RECIPE_POLICY_APPEND = "append"

# Extraction prompt. Placeholders: {caption}, {transcript}
EXTRACT_PROMPT_TEMPLATE = """\
Below are the caption and the audio transcript of a short cooking video.

Extract every recipe they describe. For each recipe give the title, an ingredients list, and \
ordered instructions. Leave out everything else: the author, biographical information, tags, \
life stories, requests for likes or follows. Be concise but do not skip details. If there are \
several recipes, separate them.

Answer with a JSON array of objects, one per recipe. Each object has exactly three keys:
- "title": a string, the title of the recipe
- "ingredients": an array of strings, one ingredient per item
- "instructions": an array of strings, one step per item

Do not wrap the JSON in a code block and do not write anything before or after it.

Caption:
{caption}

Transcript:
{transcript}
"""
