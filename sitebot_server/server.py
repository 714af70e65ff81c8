"""Core SiteBot Server implementation."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, List, Optional

import requests
from flask import Flask, jsonify, request
from flask_cors import CORS

from .backends import call_chat, check_ollama_health, check_openai_health
from .config import ServerConfig
from .rag.indexer import SiteIndex

logger = logging.getLogger(__name__)

EMPTY_MESSAGE_REPLY = "Please type a message."
NO_KNOWLEDGE_MARKER = "Knowledge: (none yet)"

LANGUAGE_RULES = {
    "en": "Answer in English.",
    "fi": "Answer in Finnish.",
    "sv": "Answer in Swedish.",
}

DEFAULT_SYSTEM_PROMPT = """You are {bot_name}, the assistant for this company's website. Use 'we'/'our' when speaking about the company.
When the question is very short (even a single word), infer the most relevant section from the knowledge and explain briefly with context.
Use only the knowledge provided. If a detail is missing, say so and offer a human handoff."""


class SiteBotServer:
    """Flask server answering questions about a website from its crawled knowledge base."""

    def __init__(
        self,
        config: ServerConfig,
        site_index: SiteIndex,
        default_system_prompt: Optional[str] = None,
    ):
        """Initialize SiteBot Server.

        Args:
            config: ServerConfig instance
            site_index: Knowledge base used for retrieval and re-indexing
            default_system_prompt: System prompt used when SYSTEM_PROMPT_PATH doesn't exist
        """
        self.config = config
        self.index = site_index
        self.default_system_prompt = default_system_prompt or DEFAULT_SYSTEM_PROMPT.format(bot_name=config.BOT_NAME)

        # System prompt caching
        self._system_prompt_cache: Optional[str] = None
        self._system_prompt_mtime: Optional[float] = None

        self.app = Flask(config.BOT_NAME.lower())
        CORS(self.app)

        if config.DEBUG_LOG:
            self._configure_debug_logging()

        self._register_routes()

    def _configure_debug_logging(self):
        """Write DEBUG logs of the whole package to a rotating file."""
        log_file = Path(self.config.DEBUG_LOG_FILE)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=self.config.DEBUG_LOG_MAX_BYTES,
            backupCount=self.config.DEBUG_LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
        )

        package_logger = logging.getLogger("sitebot_server")
        package_logger.setLevel(logging.DEBUG)
        package_logger.addHandler(file_handler)

        max_mb = self.config.DEBUG_LOG_MAX_BYTES / (1024 * 1024)
        print(f"Debug logging enabled: {log_file.absolute()}")
        print(f"  Rotation: {max_mb:.1f}MB max, {self.config.DEBUG_LOG_BACKUP_COUNT} backups")

    def _register_routes(self):
        """Register Flask routes."""
        self.app.route("/health", methods=["GET"])(self.health)
        self.app.route("/kb-status", methods=["GET"])(self.kb_status)
        self.app.route("/reindex", methods=["POST"])(self.reindex)
        self.app.route("/chat", methods=["POST"])(self.chat)

    def get_system_prompt(self) -> str:
        """Load system prompt from markdown file with smart caching."""
        prompt_path = Path(self.config.SYSTEM_PROMPT_PATH)

        if not prompt_path.exists():
            return self.default_system_prompt

        try:
            current_mtime = prompt_path.stat().st_mtime

            if self._system_prompt_cache is not None and self._system_prompt_mtime == current_mtime:
                return self._system_prompt_cache

            self._system_prompt_cache = prompt_path.read_text(encoding="utf-8")
            self._system_prompt_mtime = current_mtime

            return self._system_prompt_cache
        except OSError as e:
            logger.warning(f"[SERVER] Error reading system prompt: {e}")
            return self.default_system_prompt

    def build_messages(self, message: str, context: str, lang: str = "en") -> List[Dict]:
        """Assemble the system instruction, retrieved knowledge and user message."""
        system = "\n".join(
            [
                self.get_system_prompt().strip(),
                LANGUAGE_RULES.get(lang, LANGUAGE_RULES["en"]),
                f"Knowledge:\n{context}" if context else NO_KNOWLEDGE_MARKER,
            ]
        )
        return [{"role": "system", "content": system}, {"role": "user", "content": message}]

    def answer(self, message: str, lang: str = "en") -> str:
        """Retrieve context for a message and ask the generation backend."""
        context = self.index.retrieve_context(message)
        messages = self.build_messages(message, context, lang)
        return call_chat(messages, self.config, self.config.DEFAULT_TEMPERATURE)

    def check_backend_health(self) -> bool:
        """Check if the backend is healthy and reachable.

        Returns:
            True if backend is healthy, False otherwise
        """
        if self.config.BACKEND_TYPE == "ollama":
            is_healthy, message = check_ollama_health(self.config, timeout=self.config.HEALTH_CHECK_TIMEOUT)
        else:
            is_healthy, message = check_openai_health(self.config, timeout=self.config.HEALTH_CHECK_TIMEOUT)

        if is_healthy:
            print(f"✓ {message}")
        else:
            print(f"✗ {message}")

        return is_healthy

    def health(self):
        """Health check endpoint."""
        return jsonify({"status": "healthy", "backend": self.config.BACKEND_TYPE, "model": self.config.CHAT_MODEL})

    def kb_status(self):
        """Report the size of the live knowledge base."""
        return jsonify(self.index.stats())

    def reindex(self):
        """Start a background re-crawl unless one is already running."""
        thread = self.index.start_background_reindex()
        if thread is None:
            return jsonify({"ok": False, "msg": "Re-crawl already in progress"}), 409
        return jsonify({"ok": True, "msg": "Re-crawling started"}), 202

    def chat(self):
        """Handle chat requests: {"message": str, "lang": "en"|"fi"|"sv"} -> {"reply": str}."""
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "Invalid JSON in request body"}), 400

        message = str(data.get("message") or "").strip()
        lang = str(data.get("lang") or "en")
        if not message:
            return jsonify({"reply": EMPTY_MESSAGE_REPLY})

        try:
            reply = self.answer(message, lang)
        except requests.Timeout:
            logger.warning("[SERVER] Backend request timed out")
            reply = (
                f"Error: Backend request timed out after {self.config.BACKEND_READ_TIMEOUT}s. "
                "The model may be overloaded or unresponsive."
            )
        except requests.ConnectionError:
            logger.warning(f"[SERVER] Could not connect to {self.config.BACKEND_TYPE} backend")
            reply = f"Error: Could not connect to {self.config.BACKEND_TYPE} backend. Please ensure it is running."
        except Exception as e:
            logger.exception(f"[SERVER] Chat request failed: {e}")
            reply = f"Error: {e!s}"

        return jsonify({"reply": reply or "(no reply)"})

    def run(self, port: Optional[int] = None, host: Optional[str] = None, debug: bool = False, crawl: bool = True):
        """Run the Flask server.

        Args:
            port: Port to run on (defaults to config.DEFAULT_PORT)
            host: Host to bind to (defaults to config.DEFAULT_HOST)
            debug: Enable debug mode
            crawl: Build the knowledge base in the background on startup
        """
        port = port or self.config.DEFAULT_PORT
        host = host or self.config.DEFAULT_HOST

        print(
            f"""
╭────────────────────────────────────╮
│  {self.config.BOT_NAME} - Website Assistant
╰────────────────────────────────────╯

Site: {self.index.config.base_url}
Backend: {self.config.BACKEND_TYPE}
Chat model: {self.config.CHAT_MODEL}
Embedding model: {self.config.EMBEDDING_MODEL}
Host: {host}
Port: {port}
"""
        )

        if host == "0.0.0.0":
            print("⚠️  WARNING: Server is binding to 0.0.0.0 (all network interfaces)")
            print("   The /reindex endpoint is not authenticated.\n")

        if self.config.HEALTH_CHECK_ON_STARTUP:
            print("Checking backend health...")
            if not self.check_backend_health():
                print("\n⚠️  Warning: Backend health check failed!")
                print("The server will start anyway, but requests may fail.")
                print("To disable this check, set HEALTH_CHECK_ON_STARTUP=false\n")

        if crawl and self.config.CRAWL_ON_STARTUP:
            self.index.start_background_reindex(
                callback=lambda index: print(f"✅ Knowledge built: {index.stats()['chunks']} chunks")
            )

        # Threaded so queries keep being served while a crawl runs
        self.app.run(host=host, port=port, debug=debug, threaded=True)
