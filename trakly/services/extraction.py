import asyncio
import enum
import io
import json
import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Tuple

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from trakly.config import settings
from trakly.core.errors import ExtractionUnavailable
from trakly.services.ai_client import GeminiClient
from trakly.services.storage import LocalFileStore, get_file_store

logger = logging.getLogger(__name__)

NO_PDF = "No PDF attached"
NO_TEXT = "No text extracted"
NO_QUESTIONS = "No questions found"
MALFORMED = "Could not parse AI response"
AI_FAILED = "Question extraction failed"
PDF_UNREADABLE = "Stored PDF could not be read"
ANSWER_PLACEHOLDER = "Answer unavailable"

MAX_PROMPT_CHARS = 30000

QUESTIONS_PROMPT = """
Identify every question in the following assignment text.
Return ONLY a JSON array, no markdown fences and no commentary.
Each element must be an object with a "question" string and an "answer" string
holding a concise, correct answer. Return [] if the text has no questions.

Text:
{text}
""".strip()

ANSWER_PROMPT = """
Answer the following assignment question concisely and correctly.
Reply with the answer text only.

Question: {question}
""".strip()


class TextGenerator(Protocol):
    async def generate(self, prompt: str) -> str: ...


@dataclass(frozen=True)
class QuestionAnswer:
    question: str
    answer: Optional[str] = None


class ParseKind(str, enum.Enum):
    OK = "ok"
    EMPTY = "empty"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class ParsedQA:
    kind: ParseKind
    items: Tuple[QuestionAnswer, ...] = ()


@dataclass
class ExtractionResult:
    questions: List[QuestionAnswer] = field(default_factory=list)
    message: Optional[str] = None


_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


def _load_json(raw: str):
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        pass
    # Models sometimes wrap the array in prose; try the outermost brackets
    start, end = raw.find("["), raw.rfind("]")
    if start == -1 or end <= start:
        return None
    try:
        return json.loads(raw[start:end + 1])
    except json.JSONDecodeError:
        return None


def _to_item(entry) -> Optional[QuestionAnswer]:
    if isinstance(entry, str):
        question = entry.strip()
        return QuestionAnswer(question) if question else None
    if isinstance(entry, dict):
        question = entry.get("question")
        if not isinstance(question, str) or not question.strip():
            return None
        answer = entry.get("answer")
        answer = answer.strip() if isinstance(answer, str) and answer.strip() else None
        return QuestionAnswer(question.strip(), answer)
    return None


def parse_qa_payload(raw: Optional[str]) -> ParsedQA:
    """
    Read the model's reply as a list of questions.

    Accepts a JSON array of strings or of {"question", "answer"} objects, or an
    object holding such an array under "questions". Anything else is MALFORMED.
    """
    text = _FENCE.sub("", raw or "").strip()
    if not text:
        return ParsedQA(ParseKind.EMPTY)

    data = _load_json(text)
    if isinstance(data, dict) and isinstance(data.get("questions"), list):
        data = data["questions"]
    if not isinstance(data, list):
        return ParsedQA(ParseKind.MALFORMED)
    if not data:
        return ParsedQA(ParseKind.EMPTY)

    items = tuple(item for item in map(_to_item, data) if item is not None)
    if not items:
        return ParsedQA(ParseKind.MALFORMED)
    return ParsedQA(ParseKind.OK, items)


def extract_pdf_text(data: bytes) -> str:
    reader = PdfReader(io.BytesIO(data))
    pages: List[str] = []
    for page in reader.pages:
        text = page.extract_text() or ""
        if text.strip():
            pages.append(text)
    return "\n".join(pages).strip()


class QuestionExtractor:
    """
    PDF -> text -> questions (and answers). Best effort throughout: every
    collaborator failure degrades to an empty or partial result with a message.
    """

    def __init__(self, store: LocalFileStore, ai: TextGenerator, pdf_timeout: float = 30.0):
        self.store = store
        self.ai = ai
        self.pdf_timeout = pdf_timeout

    async def read_text(self, pdf_url: str) -> Tuple[Optional[str], Optional[str]]:
        try:
            data = await asyncio.to_thread(self.store.load, pdf_url)
        except OSError as exc:
            logger.warning("Could not load %s: %s", pdf_url, exc)
            return None, PDF_UNREADABLE

        try:
            text = await asyncio.wait_for(asyncio.to_thread(extract_pdf_text, data), timeout=self.pdf_timeout)
        except asyncio.TimeoutError:
            logger.warning("PDF text extraction timed out for %s", pdf_url)
            return None, NO_TEXT
        except (PyPdfError, ValueError) as exc:
            logger.warning("PDF text extraction failed for %s: %s", pdf_url, exc)
            return None, NO_TEXT

        if not text:
            return None, NO_TEXT
        return text, None

    async def answer(self, question: str) -> str:
        try:
            reply = await self.ai.generate(ANSWER_PROMPT.format(question=question))
        except Exception as exc:
            logger.warning("Answer generation failed for %r: %s", question[:60], exc)
            return ANSWER_PLACEHOLDER
        return reply.strip() or ANSWER_PLACEHOLDER

    async def run(self, pdf_url: Optional[str]) -> ExtractionResult:
        if not pdf_url:
            return ExtractionResult(message=NO_PDF)

        text, problem = await self.read_text(pdf_url)
        if text is None:
            return ExtractionResult(message=problem)

        try:
            raw = await self.ai.generate(QUESTIONS_PROMPT.format(text=text[:MAX_PROMPT_CHARS]))
        except Exception as exc:
            logger.warning("Question extraction call failed for %s: %s", pdf_url, exc)
            return ExtractionResult(message=AI_FAILED)

        parsed = parse_qa_payload(raw)
        if parsed.kind is ParseKind.EMPTY:
            return ExtractionResult(message=NO_QUESTIONS)
        if parsed.kind is ParseKind.MALFORMED:
            logger.warning("Unparseable extraction reply for %s: %.200s", pdf_url, raw)
            return ExtractionResult(message=MALFORMED)

        questions: List[QuestionAnswer] = []
        for item in parsed.items:
            if item.answer is None:
                item = QuestionAnswer(item.question, await self.answer(item.question))
            questions.append(item)
        return ExtractionResult(questions=questions)


def get_ai_client() -> GeminiClient:
    return GeminiClient.from_settings()


def get_extractor() -> QuestionExtractor:
    ai = get_ai_client()
    if not ai.configured:
        raise ExtractionUnavailable("Question extraction is not configured on this server")
    return QuestionExtractor(get_file_store(), ai, settings.PDF_TIMEOUT_SECONDS)
