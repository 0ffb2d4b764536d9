"""Content classifier delegate backed by a local Ollama model."""

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

from ..config.models import AISettings
from ..errors import ClassifierError
from ..models import ConfidenceLevel, FileCategory, PdfMetadata
from ..utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ClassificationContext:
    """What the classifier gets to see about a file."""

    filename: str
    extension: str
    size: int
    content_preview: str | None = None
    pdf_metadata: PdfMetadata | None = None


@dataclass
class ClassifierResult:
    """Category suggestion returned by a classifier."""

    category: FileCategory
    confidence: ConfidenceLevel
    reasoning: str


class BaseClassifier(ABC):
    """Interface for classifiers consulted when patterns are inconclusive."""

    @abstractmethod
    def classify(self, context: ClassificationContext) -> ClassifierResult | None:
        """
        Classify a file.

        Returns:
            A result, or None when the classifier is unavailable. Must not raise.
        """
        pass


class NullClassifier(BaseClassifier):
    """Classifier that never has an opinion."""

    def classify(self, context: ClassificationContext) -> ClassifierResult | None:
        return None


class OllamaClient:
    """Client for interacting with Ollama API."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model_name: str = "qwen2.5:latest",
        temperature: float = 0.1,
        max_retries: int = 3,
        timeout: float = 60.0,
    ):
        """
        Initialize Ollama client.

        Args:
            base_url: Ollama API base URL
            model_name: Model to use for classification
            temperature: LLM temperature (lower = more deterministic)
            max_retries: Maximum number of retry attempts
            timeout: Read timeout in seconds for a single generation
        """
        self.base_url = base_url.rstrip("/")
        self.model_name = model_name
        self.temperature = temperature
        self.max_retries = max_retries
        self.timeout = httpx.Timeout(timeout, connect=5.0)

    def check_connection(self) -> bool:
        """Check if Ollama is reachable."""
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.get(f"{self.base_url}/api/tags")
                return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning(f"Ollama connection check failed: {e}")
            return False

    def generate(self, prompt: str) -> str:
        """
        Generate a response from Ollama.

        Raises:
            ClassifierError: If every attempt failed
        """
        payload = {
            "model": self.model_name,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": self.temperature,
            },
        }

        last_error = None
        for attempt in range(self.max_retries):
            try:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(
                        f"{self.base_url}/api/generate",
                        json=payload,
                    )

                    if response.status_code == 200:
                        try:
                            data = response.json()
                            return str(data.get("response") or "")
                        except (ValueError, AttributeError) as e:
                            logger.warning(
                                f"Malformed Ollama reply on attempt {attempt + 1}/{self.max_retries}: {e}"
                            )
                            last_error = f"Malformed reply: {e}"
                            continue

                    logger.warning(
                        f"Ollama returned status {response.status_code} "
                        f"on attempt {attempt + 1}/{self.max_retries}"
                    )
                    last_error = f"HTTP {response.status_code}: {response.text[:200]}"

            except httpx.TimeoutException as e:
                logger.warning(f"Ollama timeout on attempt {attempt + 1}: {e}")
                last_error = f"Timeout: {e}"

            except httpx.RequestError as e:
                logger.warning(f"Ollama request error on attempt {attempt + 1}: {e}")
                last_error = f"Request error: {e}"

        raise ClassifierError(f"All {self.max_retries} attempts to Ollama failed: {last_error}")


CLASSIFICATION_PROMPT_TEMPLATE = """Analyze this file for organization.

File: {filename}
Extension: {extension}
Size: {size} bytes
{content_section}

Respond with ONLY valid JSON (no markdown, no explanation):
{{"category": "string", "confidence": "low|medium|high", "reasoning": "string"}}

Categories (choose one):
- finances: invoices, receipts, tax documents, budgets, statements
- screenshots: screen captures
- installers: executables, packages, setup files
- work: work/business documents, presentations, reports
- personal: personal documents, letters, certificates, resumes
- reference: manuals, guides, documentation
- media: images, videos, audio
- archives: compressed files
- code: source code, configuration files
- misc: cannot determine category"""


class OllamaClassifier(BaseClassifier):
    """
    Classifies files with a local LLM via Ollama.

    Any transport or parsing problem yields None so that callers fall back
    to pattern-based classification.
    """

    CONTENT_PREVIEW_CHARS = 1000

    def __init__(
        self,
        ai_settings: AISettings | None = None,
        client: OllamaClient | None = None,
    ):
        self.ai_settings = ai_settings or AISettings()
        self.client = client or OllamaClient(
            base_url=self.ai_settings.ollama_base_url,
            model_name=self.ai_settings.model_name,
            temperature=self.ai_settings.temperature,
            max_retries=self.ai_settings.max_retries,
        )

    def build_prompt(self, context: ClassificationContext) -> str:
        """Build the classification prompt for a file."""
        content_section = ""
        if context.content_preview:
            preview = context.content_preview[: self.CONTENT_PREVIEW_CHARS]
            content_section = f"\nContent preview:\n{preview}"
        elif context.pdf_metadata:
            meta = context.pdf_metadata
            content_section = (
                "\nPDF metadata:\n"
                f"- Title: {meta.title or 'unknown'}\n"
                f"- Author: {meta.author or 'unknown'}\n"
                f"- Pages: {meta.page_count or 'unknown'}"
            )
            if meta.first_page_text:
                content_section += f"\nFirst page text:\n{meta.first_page_text}"

        return CLASSIFICATION_PROMPT_TEMPLATE.format(
            filename=context.filename,
            extension=context.extension,
            size=context.size,
            content_section=content_section,
        )

    def parse_response(self, response: str) -> ClassifierResult | None:
        """Parse the model's JSON answer, coercing unknown values."""
        # The model may wrap its answer in prose or a code fence
        json_match = re.search(r"\{.*\}", response, re.DOTALL)
        if not json_match:
            logger.warning(f"No JSON object in classifier response: {response[:200]}")
            return None

        try:
            data = json.loads(json_match.group())
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse classifier response: {e}")
            return None

        if not isinstance(data, dict):
            return None

        try:
            category = FileCategory(str(data.get("category", "")).lower())
        except ValueError:
            category = FileCategory.MISC

        try:
            confidence = ConfidenceLevel(str(data.get("confidence", "")).lower())
        except ValueError:
            confidence = ConfidenceLevel.LOW

        reasoning = str(data.get("reasoning") or "No reasoning provided")
        return ClassifierResult(category=category, confidence=confidence, reasoning=reasoning)

    def classify(self, context: ClassificationContext) -> ClassifierResult | None:
        prompt = self.build_prompt(context)
        logger.debug(f"Classifying {context.filename} with {self.client.model_name}")

        try:
            response = self.client.generate(prompt)
        except ClassifierError as e:
            logger.warning(f"Classifier unavailable for {context.filename}: {e}")
            return None

        result = self.parse_response(response)
        if result is not None:
            logger.info(
                f"Classified {context.filename}: category={result.category.value}, "
                f"confidence={result.confidence.value}"
            )
        return result
